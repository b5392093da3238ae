"""HTTP surface over the Quarter Runtime."""
