"""finassist admin HTTP surface."""
