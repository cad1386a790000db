"""
Coding Question Generation Pipeline
generation/

Steps:
1. Orchestrator        — validate batch, split into concurrency-bounded batches
2. Question Generator  — build prompt, call the LLM through the retry policy
3. Question Parser     — raw text → JSON object → validated Question
4. Store               — persist via database.crud.QuestionStore, invalidate cache
5. Ledger              — per-title success / failure report for the caller
"""
