"""
ml — Reinforcement-learning pieces
==================================

Modules
-------
q_table
    :class:`ActionSpace` (phase × duration encoding) and the numpy-backed
    :class:`QTable`.
persistence
    :class:`QTableStore`, one JSON record per controller id.
history
    :class:`DecisionHistory`, per-decision log exported through pandas.
"""
