"""bump-cascade: coordinate cascading version bumps through dependents."""
