"""Festival / event CSV feed pipeline: parse, normalise, cache, sort, page."""
