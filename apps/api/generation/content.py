"""Content payloads produced by an expansion, discriminated on ``format``."""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

ContentFormat = Literal["blog_post", "thread", "code_repo"]
CONTENT_FORMATS = ("blog_post", "thread", "code_repo")

THREAD_POST_MAX_CHARS = 500
WORDS_PER_MINUTE = 200


class FormatDecision(BaseModel):
    format: ContentFormat
    reasoning: str = Field(min_length=1)


class BlogPost(BaseModel):
    format: Literal["blog_post"] = "blog_post"
    title: str = Field(min_length=1)
    markdown: str = Field(min_length=1)
    word_count: int = Field(ge=0)
    reading_time_minutes: int = Field(ge=1)


class ThreadPost(BaseModel):
    order: int = Field(ge=1)
    text: str = Field(min_length=1, max_length=THREAD_POST_MAX_CHARS)


class Thread(BaseModel):
    format: Literal["thread"] = "thread"
    posts: List[ThreadPost] = Field(min_length=1)
    total_posts: int = Field(ge=1)


class RepoFile(BaseModel):
    path: str = Field(min_length=1)
    content: str


class CodeRepo(BaseModel):
    format: Literal["code_repo"] = "code_repo"
    project_type: Literal["python", "nodejs"]
    repo_name: str = Field(min_length=1)
    description: str
    files: List[RepoFile] = Field(min_length=1)
    readme: str


ExpansionContent = Annotated[Union[BlogPost, Thread, CodeRepo], Field(discriminator="format")]

content_adapter = TypeAdapter(ExpansionContent)


# Shapes requested from the model. Derived counters are filled in locally.


class BlogDraft(BaseModel):
    title: str = Field(min_length=1)
    markdown: str = Field(min_length=1)


class ThreadDraft(BaseModel):
    posts: List[ThreadPost] = Field(min_length=1)


def blog_from_draft(draft: BlogDraft) -> BlogPost:
    word_count = len(draft.markdown.split())
    reading_time = max(1, -(-word_count // WORDS_PER_MINUTE))
    return BlogPost(
        title=draft.title,
        markdown=draft.markdown,
        word_count=word_count,
        reading_time_minutes=reading_time,
    )


def thread_from_draft(draft: ThreadDraft) -> Thread:
    posts = sorted(draft.posts, key=lambda post: post.order)
    return Thread(posts=posts, total_posts=len(posts))
