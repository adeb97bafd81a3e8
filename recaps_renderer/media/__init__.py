"""Media resolution: downloads and the background-video cache."""
