"""CineCritic: movie review catalog with live filtering and an admin area."""
