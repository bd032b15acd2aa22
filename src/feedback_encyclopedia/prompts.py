"""Prompt templates for the relevance ranker."""

RANKING_PROMPT = """You are a helpful assistant for a feedback encyclopedia.
The user has provided a problem description or a draft text: "{query}"

Here is a list of known problems, one per line:
{problems}

Task: Identify the top {top_k} most relevant problems from the list that match the user's input.
If the input is a draft text, find the problems that this text likely suffers from.
Return ONLY a JSON array of the top {top_k} relevant IDs (integers), sorted by relevance, most relevant first.
Example output: {example}
DO NOT include any explanation, markdown formatting, or code blocks. Just the JSON array.
"""

PROBLEM_LINE = "ID: {id}, Problem: {problem}"
