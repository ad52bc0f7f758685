"""
Quiz Generation Pipeline
generation/

Steps:
1. Question Generator  — deterministic prompt from extracted text + question count
2. GPT Client          — Chat Completions call with bounded retry/backoff
3. Validator           — strict schema check of the untrusted reply
4. Quiz Assembler      — quiz + questions persisted in one transaction
"""
