"""Filter resolution pipeline: tier orchestration, request boundary and result cache."""
