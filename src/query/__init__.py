"""Query translation and evaluation.

The query layer converts an English request over one of the entity sheets into a typed filter tree,
repairs it against the inferred column schema, and evaluates it over in-memory rows.
"""

