"""
Evaluation suite -- end-to-end scenarios and system-wide properties.

Run evals: pytest evals/ -v
Unit tests live in tests/; evals exercise several components together and
grade the outcome with deterministic CodeGrader checks.
"""
