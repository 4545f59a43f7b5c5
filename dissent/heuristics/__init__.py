"""Lexical heuristics: tokenizer, pattern tables and the pairwise signal matcher.

Public API:
- normalizer.tokenize           : text -> set of meaningful lowercase terms
- normalizer.jaccard_similarity : set similarity, 0 for two empty sets
- normalizer.tag_overlap        : case-insensitive overlap coefficient of tag lists
- patterns.PatternSet           : replaceable phrase and regex tables
- matcher.SignalMatcher         : weighted contradiction signals between fragments
"""
