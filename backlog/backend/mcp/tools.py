"""
Backlog Tools.

The agent-facing operations. Each tool pairs a pydantic input model (the
published JSON Schema uses camelCase names) with a handler that resolves
loose references, calls the services and renders markdown-ish text.

Handlers raise application errors for anything the agent should see as a
failure; the registry turns those into ``❌`` content.
"""

import base64
import binascii

from pydantic import Field

from backlog.backend.core.exceptions import NotFoundError, ValidationError
from backlog.backend.core.storage import BlobStorage
from backlog.backend.core.utils import preview
from backlog.backend.mcp.registry import Tool, ToolConfig, ToolContext, ToolRegistry
from backlog.backend.models.note import NoteType
from backlog.backend.models.project import Priority, Project, ProjectStatus
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.schemas.base import CamelModel
from backlog.backend.schemas.project import ProjectCreate, ProjectUpdate
from backlog.backend.schemas.search import SearchScope
from backlog.backend.services.file import FileService
from backlog.backend.services.note import NoteService
from backlog.backend.services.project import ProjectService
from backlog.backend.services.resolution import find_project_by_title, resolve_project_id
from backlog.backend.services.search import SearchService

STATUS_EMOJI = {
    ProjectStatus.IDEA: "💡",
    ProjectStatus.PLANNED: "📋",
    ProjectStatus.IN_PROGRESS: "🚧",
    ProjectStatus.PAUSED: "⏸️",
    ProjectStatus.DONE: "✅",
    ProjectStatus.ARCHIVED: "📦",
}

NOTE_PREVIEW = 120
EDIT_PREVIEW = 150
SEARCH_SNIPPET = 150
DETAIL_PREVIEW = 200
VERSION_PREVIEW = 80


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class AddNoteInput(CamelModel):
    content: str = Field(..., min_length=1, description="Note content (markdown supported)")
    project_id: str | None = Field(default=None, description="Project ID or ID prefix")
    project_title: str | None = Field(
        default=None,
        description="Project title for fuzzy matching, used when projectId is absent",
    )
    type: NoteType = NoteType.GENERAL
    source: str | None = Field(
        default=None,
        max_length=100,
        description="Where the note comes from: claude-chat, claude-code or manual",
    )


class GetProjectInput(CamelModel):
    project_id: str | None = Field(default=None, description="Project ID or ID prefix")
    title: str | None = Field(default=None, description="Project title (fuzzy match)")


class ListProjectsInput(CamelModel):
    status: ProjectStatus | None = None
    priority: Priority | None = None
    tag: str | None = Field(default=None, description="Only projects carrying this tag")
    limit: int = Field(default=20, ge=1, le=100)


class UpdateProjectInput(ProjectUpdate):
    project_id: str = Field(..., min_length=1, description="Project ID or ID prefix")


class DeleteProjectInput(CamelModel):
    project_id: str = Field(..., min_length=1, description="Project ID or ID prefix")
    hard: bool = Field(default=False, description="Delete permanently instead of archiving")


class SearchInput(CamelModel):
    query: str = Field(..., min_length=1)
    type: SearchScope = "all"
    limit: int = Field(default=10, ge=1, le=50)


class BacklogSummaryInput(CamelModel):
    include_archived: bool = False


class EditNoteInput(CamelModel):
    note_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    type: NoteType | None = None


class UploadFileInput(CamelModel):
    base64_content: str = Field(..., description="File content encoded as base64")
    filename: str = Field(..., min_length=1, description="Original filename including extension")
    mime_type: str = Field(..., min_length=1, description="MIME type, e.g. image/png")
    project_id: str | None = Field(default=None, description="Project ID or ID prefix")
    note_id: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _tag_suffix(project: Project) -> str:
    names = project.tag_names
    return f" [{', '.join(names)}]" if names else ""


async def _resolve_id(ctx: ToolContext, id_or_prefix: str) -> str:
    project_id = await resolve_project_id(
        ProjectRepository(ctx.session),
        id_or_prefix,
        scan_limit=ctx.config.prefix_scan_limit,
    )
    if project_id is None:
        raise NotFoundError(f'No project found with ID "{id_or_prefix}".')
    return project_id


async def _resolve_title(ctx: ToolContext, title: str) -> str:
    project = await find_project_by_title(
        ProjectRepository(ctx.session),
        title,
        window=ctx.config.title_match_window,
    )
    if project is None:
        raise NotFoundError(
            f'No project found matching "{title}". '
            "Use create_project to create it first, or list_projects to see existing projects."
        )
    return project.id


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def create_project(ctx: ToolContext, args: ProjectCreate) -> str:
    project = await ProjectService(ctx.session).create_project(args)
    lines = [
        f"✅ Project created: **{project.title}**",
        f"ID: {project.id}",
        f"Status: {project.status.value} | Priority: {project.priority.value}",
    ]
    if project.tag_names:
        lines.append(f"Tags: {', '.join(project.tag_names)}")
    return "\n".join(lines)


async def add_note(ctx: ToolContext, args: AddNoteInput) -> str:
    if args.project_id:
        project_id = await _resolve_id(ctx, args.project_id)
    elif args.project_title:
        project_id = await _resolve_title(ctx, args.project_title)
    else:
        raise ValidationError("Provide either projectId or projectTitle to identify the project.")

    note = await NoteService(ctx.session).create_note(
        project_id,
        args.content,
        type=args.type,
        source=args.source or ctx.config.default_note_source,
    )
    return "\n".join([
        "✅ Note added to project.",
        f"Note ID: {note.id}",
        f"Type: {note.type.value} | Source: {note.source or 'manual'} | Version: {note.version}",
        f"Preview: {preview(note.content, NOTE_PREVIEW)}",
    ])


async def get_project(ctx: ToolContext, args: GetProjectInput) -> str:
    if args.project_id:
        project_id = await _resolve_id(ctx, args.project_id)
    elif args.title:
        project_id = await _resolve_title(ctx, args.title)
    else:
        raise ValidationError("Provide either projectId or title.")

    project = await ProjectService(ctx.session).get_project_full(project_id)
    depth = ctx.config.version_history_depth

    if project.notes:
        note_lines = []
        for i, note in enumerate(project.notes, start=1):
            note_lines.append(
                f"  {i}. [{note.type.value}] {note.created_at.date().isoformat()} (v{note.version})\n"
                f"     {preview(note.content, DETAIL_PREVIEW)}"
            )
            for snapshot in note.versions[:depth]:
                note_lines.append(
                    f"     ↳ v{snapshot.version} {snapshot.created_at.date().isoformat()}: "
                    f"{preview(snapshot.content, VERSION_PREVIEW)}"
                )
        notes_text = "\n".join(note_lines)
    else:
        notes_text = "  (no notes yet)"

    if project.files:
        files_text = "\n".join(f"  - {f.filename} ({f.mime_type})" for f in project.files)
    else:
        files_text = "  (no files)"

    lines = [
        f"# {project.title}",
        f"ID: {project.id}",
        f"Status: {project.status.value} | Priority: {project.priority.value}",
    ]
    if project.tag_names:
        lines.append(f"Tags: {', '.join(project.tag_names)}")
    if project.description:
        lines.append(f"\nDescription:\n{project.description}")
    if project.repo_url:
        lines.append(f"Repo: {project.repo_url}")
    if project.deploy_url:
        lines.append(f"Deploy: {project.deploy_url}")
    if project.blog_url:
        lines.append(f"Blog: {project.blog_url}")
    lines.append(f"\n## Notes ({len(project.notes)})\n{notes_text}")
    lines.append(f"\n## Files ({len(project.files)})\n{files_text}")
    lines.append(
        f"\nCreated: {project.created_at.date().isoformat()} | "
        f"Updated: {project.updated_at.date().isoformat()}"
    )
    return "\n".join(lines)


async def list_projects(ctx: ToolContext, args: ListProjectsInput) -> str:
    service = ProjectService(ctx.session)
    projects, _ = await service.list_projects(
        status=args.status,
        priority=args.priority,
        tag=args.tag,
        limit=args.limit,
    )
    if not projects:
        return "No projects found."

    note_counts, _ = await service.counts(projects)
    lines = [
        f"{STATUS_EMOJI[p.status]} **{p.title}** ({p.id[:8]}){_tag_suffix(p)} "
        f"- {note_counts.get(p.id, 0)} notes"
        for p in projects
    ]
    return f"{len(projects)} projects:\n\n" + "\n".join(lines)


async def update_project(ctx: ToolContext, args: UpdateProjectInput) -> str:
    project_id = await _resolve_id(ctx, args.project_id)
    changes = ProjectUpdate.model_validate(
        args.model_dump(exclude_unset=True, exclude={"project_id"})
    )
    project = await ProjectService(ctx.session).update_project(project_id, changes)
    tags = ", ".join(project.tag_names) or "(none)"
    return "\n".join([
        f"✅ Project updated: **{project.title}**",
        f"Status: {project.status.value} | Priority: {project.priority.value}",
        f"Tags: {tags}",
    ])


async def delete_project(ctx: ToolContext, args: DeleteProjectInput) -> str:
    project_id = await _resolve_id(ctx, args.project_id)
    await ProjectService(ctx.session).delete_project(
        project_id,
        hard=args.hard,
        storage=ctx.storage,
    )
    if args.hard:
        return f"🗑️ Project {project_id} permanently deleted."
    return (
        f"📦 Project {project_id} archived. "
        "Use update_project with status IDEA/PLANNED/etc. to restore it."
    )


async def search(ctx: ToolContext, args: SearchInput) -> str:
    results = await SearchService(ctx.session).search(args.query, args.type, args.limit)
    if not results:
        return f'No results for "{args.query}".'
    lines = []
    for i, r in enumerate(results, start=1):
        icon = "📁" if r.type == "project" else "📝"
        lines.append(f"{i}. {icon} **{r.title}** ({r.id[:8]})\n   {r.snippet[:SEARCH_SNIPPET]}")
    return f'Results for "{args.query}" ({len(results)}):\n\n' + "\n".join(lines)


async def backlog_summary(ctx: ToolContext, args: BacklogSummaryInput) -> str:
    summary = await ProjectService(ctx.session).summary(
        include_archived=args.include_archived,
        top_n=ctx.config.summary_top_n,
    )
    sections = []
    for bucket in summary.buckets:
        emoji = STATUS_EMOJI[bucket.status]
        if bucket.total == 0:
            sections.append(f"{emoji} **{bucket.status.value}**: (none)")
            continue
        lines = [f"  - {p.title}{_tag_suffix(p)}" for p in bucket.projects]
        hidden = bucket.total - len(bucket.projects)
        if hidden > 0:
            lines.append(f"  ...and {hidden} more")
        sections.append(f"{emoji} **{bucket.status.value}** ({bucket.total}):\n" + "\n".join(lines))
    return f"# Backlog Summary\nActive: {summary.active_count}\n\n" + "\n".join(sections)


async def edit_note(ctx: ToolContext, args: EditNoteInput) -> str:
    note = await NoteService(ctx.session).edit_note(args.note_id, args.content, type=args.type)
    return f"✅ Note updated (v{note.version}).\n{preview(note.content, EDIT_PREVIEW)}"


async def upload_file(ctx: ToolContext, args: UploadFileInput) -> str:
    ctx.storage.ensure_available()

    try:
        data = base64.b64decode(args.base64_content, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("base64Content is not valid base64.") from e

    project_id = await _resolve_id(ctx, args.project_id) if args.project_id else None
    file = await FileService(ctx.session, ctx.storage).upload(
        data,
        args.filename,
        mime_type=args.mime_type,
        project_id=project_id,
        note_id=args.note_id,
    )
    return "\n".join([
        f"✅ File uploaded: **{file.filename}**",
        f"ID: {file.id}",
        f"Size: {file.size / 1024:.1f} KB",
    ])


TOOLS = [
    Tool(
        name="create_project",
        description="Create a new project in the backlog. Tags are created if they do not exist.",
        input_model=ProjectCreate,
        handler=create_project,
    ),
    Tool(
        name="add_note",
        description=(
            "Add a note to an existing project. Provide either projectId (exact or prefix) "
            "or projectTitle (fuzzy match). This is the primary tool for "
            "'save this conversation to the backlog' flows."
        ),
        input_model=AddNoteInput,
        handler=add_note,
    ),
    Tool(
        name="get_project",
        description=(
            "Get full context of a project including all notes with recent versions, "
            "files, and tags. Use projectId or title (fuzzy)."
        ),
        input_model=GetProjectInput,
        handler=get_project,
    ),
    Tool(
        name="list_projects",
        description="List projects with optional status, priority and tag filters.",
        input_model=ListProjectsInput,
        handler=list_projects,
    ),
    Tool(
        name="update_project",
        description="Update an existing project's fields, status, priority, or tags.",
        input_model=UpdateProjectInput,
        handler=update_project,
    ),
    Tool(
        name="delete_project",
        description="Archive (soft-delete) or permanently delete a project. Defaults to archive.",
        input_model=DeleteProjectInput,
        handler=delete_project,
    ),
    Tool(
        name="search",
        description="Full-text search across projects and notes.",
        input_model=SearchInput,
        handler=search,
    ),
    Tool(
        name="backlog_summary",
        description="Get a summary of the backlog grouped by status.",
        input_model=BacklogSummaryInput,
        handler=backlog_summary,
    ),
    Tool(
        name="edit_note",
        description="Edit a note. The previous version is saved automatically.",
        input_model=EditNoteInput,
        handler=edit_note,
    ),
    Tool(
        name="upload_file",
        description=(
            "Upload a file (provided as base64) and attach it to a project or note. "
            "Only available where the server has local storage enabled."
        ),
        input_model=UploadFileInput,
        handler=upload_file,
    ),
]


def build_registry(
    session_factory,
    storage: BlobStorage,
    config: ToolConfig | None = None,
) -> ToolRegistry:
    """Registry with every backlog tool registered."""
    registry = ToolRegistry(session_factory, storage, config)
    for tool in TOOLS:
        registry.register(tool)
    return registry
