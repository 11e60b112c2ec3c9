from generation.content import CONTENT_FORMATS, BlogPost, CodeRepo, ExpansionContent, FormatDecision, Thread
from generation.pipeline import GenerationResult, generate_content

__all__ = [
    "CONTENT_FORMATS",
    "BlogPost",
    "CodeRepo",
    "ExpansionContent",
    "FormatDecision",
    "GenerationResult",
    "Thread",
    "generate_content",
]
