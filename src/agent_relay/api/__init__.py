"""HTTP surface for the dispatcher and the answer pipeline."""
