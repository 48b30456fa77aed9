"""HTTP surface for the deal journey engine."""
