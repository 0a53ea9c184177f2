"""Link engine services: parsing, resolution, graph and rename cascades."""
