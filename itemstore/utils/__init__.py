"""Small pure helpers: random ids and batch partitioning."""
