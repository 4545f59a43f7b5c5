"""Contradiction detection for Dissent.

Two stages over the knowledge corpus:
  Stage 1 (Discovery):    heuristic candidate pairs, ranked by score (candidates.py).
  Stage 2 (Verification): top candidates confirmed by an external judge (verification.py).

ConflictEngine (engine.py) wires both stages to the record store, the judge and
the conflict ledger.
"""
