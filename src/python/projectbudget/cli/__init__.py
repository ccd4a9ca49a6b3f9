"""ProjectBudget command line interface."""
