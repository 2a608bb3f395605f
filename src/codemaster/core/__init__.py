"""Event reconciliation core: state, reconciler, controller and persistence."""
