"""
Survey Logic Engine.

Keeps the conditional logic of a survey (display, hide, skip and branching
logic) consistent while the survey is edited:

    - renumber: dense Q<n>/BL<n> identifiers and rewritten references
    - drafts: partially specified logic edits held out of the survey
    - validator: dangling references, ordering violations, contradictions
    - exhaustiveness: branching that covers every choice
    - paths: per-path question, page and time statistics
"""

__version__ = "0.1.0"
