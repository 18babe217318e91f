"""Source extraction: comment appendix, front-matter, spans, qmd parser."""
