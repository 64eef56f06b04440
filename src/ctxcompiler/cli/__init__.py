"""ctxc command-line interface."""
