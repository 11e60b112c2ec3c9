"""Prompt builders for format routing and the per-format creators."""

import json
from typing import Any, Dict


def _idea_block(idea: Dict[str, Any]) -> str:
    bullets = idea.get("bullets") or []
    return (
        f"Title: {idea.get('title') or 'Untitled'}\n"
        f"Description: {idea.get('description') or 'No description'}\n"
        f"Bullets: {json.dumps(bullets) if bullets else 'None'}"
    )


def routing_prompt(idea: Dict[str, Any]) -> str:
    return f"""You are a content format strategist. Decide the single best format to expand this idea into.

Available formats:
1. blog_post: long-form article (1000-2000 words). Best for explanations, tutorials, guides and analyses.
2. thread: social media thread (5-10 posts, at most 500 characters each). Best for quick insights and tips.
3. code_repo: small runnable code project (python or nodejs). Best for tools, demos and implementations.

Idea:
{_idea_block(idea)}

Return the chosen format and 2-3 sentences of reasoning. Default to blog_post if uncertain."""


def blog_prompt(idea: Dict[str, Any]) -> str:
    return f"""Write a well-structured blog post in markdown that expands this idea.
Use a clear title, an introduction, sections with headings and a conclusion. Aim for 1000-2000 words.

Idea:
{_idea_block(idea)}"""


def thread_prompt(idea: Dict[str, Any]) -> str:
    return f"""Write a social media thread of 5-10 posts that expands this idea.
Number posts from 1. Each post must be at most 500 characters. The first post should hook the reader.

Idea:
{_idea_block(idea)}"""


def code_prompt(idea: Dict[str, Any]) -> str:
    return f"""Design a small, runnable code project that demonstrates this idea.
Pick project_type "python" or "nodejs", give a short kebab-case repo_name, a one-line description,
the complete source files (path and content) and a README in markdown with setup and usage.

Idea:
{_idea_block(idea)}"""
