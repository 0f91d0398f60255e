"""
Tests for node handlers
"""

import asyncio
import base64

import pytest

from vault_automation.adapters.documents import InMemoryDocumentStore
from vault_automation.history.models import StepStatus
from vault_automation.runtime_data.files import FileData, split_path
from vault_automation.runtime_data.state import CancellationToken, TriggerMode
from vault_automation.types import (
    CommandResult,
    DialogResult,
    DialogSpec,
    HttpResponse,
    SelectionInfo,
    ToolCallResult,
)
from vault_automation.workflows.definition import NodeType, WorkflowDefinition
from vault_automation.workflows.engine import WorkflowEngine
from vault_automation.workflows.nodes import NodeHandlerRegistry, NodeResult, registry
from vault_automation.workflows.results import RunStatus


async def _run(collaborators, settings, yaml_str, variables=None, trigger_mode=TriggerMode.PANEL):
    engine = WorkflowEngine(collaborators, settings)
    return await engine.execute(
        WorkflowDefinition.from_yaml(yaml_str),
        variables=variables,
        trigger_mode=trigger_mode,
    )


@pytest.fixture
def vault():
    """Document store with a small vault."""
    return InMemoryDocumentStore(
        {
            "notes/alpha.md": "first line about cats",
            "notes/beta.md": "dogs only",
            "projects/a.md": "---\ntags: [work]\n---\nbody",
            "projects/b.md": "#home stuff",
            "projects/sub/c.md": "#work",
            "img/logo.png": b"\x89PNG\r\n",
        }
    )


@pytest.fixture
def vault_collaborators(collaborators, vault):
    collaborators.documents = vault
    return collaborators


class TestHandlerRegistry:
    """Tests for the handler registry."""

    def test_every_node_type_has_handler(self):
        """Test that the global registry covers all node types."""
        assert registry.missing() == []
        assert len(registry) == len(NodeType)

    def test_external_flags(self):
        """Test which handlers await external collaborators."""
        internal = {NodeType.VARIABLE, NodeType.SET, NodeType.JSON, NodeType.IF, NodeType.WHILE}
        for node_type in NodeType:
            assert registry.get(node_type).external is (node_type not in internal)

    def test_register_requires_coroutine(self):
        """Test that synchronous handlers are rejected."""
        local = NodeHandlerRegistry()

        def handler(params, context, collaborators, cancel):
            return NodeResult()

        with pytest.raises(TypeError, match="must be async"):
            local.register(NodeType.SLEEP, handler)

    def test_engine_rejects_incomplete_registry(self):
        """Test that the engine refuses to start with missing handlers."""
        local = NodeHandlerRegistry()

        async def handler(params, context, collaborators, cancel):
            return NodeResult()

        local.register(NodeType.SLEEP, handler)

        with pytest.raises(RuntimeError, match="No handler registered"):
            WorkflowEngine(handler_registry=local)


class TestVariableHandlers:
    """Tests for variable, set and json nodes."""

    @pytest.mark.asyncio
    async def test_set_arithmetic(self, collaborators, settings):
        """Test arithmetic in set values."""
        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - {id: a, type: set, name: product, value: "{{x}} * 4"}
  - {id: b, type: set, name: quotient, value: "{{x}} / 0"}
  - {id: c, type: set, name: rest, value: "7 % 3"}
  - {id: d, type: set, name: label, value: "total {{x}}"}
""",
            variables={"x": 2.5},
        )

        assert result.variables["product"] == 10
        assert result.variables["quotient"] == 0
        assert result.variables["rest"] == 1
        assert result.variables["label"] == "total 2.5"

    @pytest.mark.asyncio
    async def test_variable_keeps_structure(self, collaborators, settings):
        """Test that a lone placeholder copies the value itself."""
        items = [{"name": "a"}, {"name": "b"}]

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: copy, type: variable, name: copy, value: '{{items}}'}\n",
            variables={"items": items},
        )

        assert result.variables["copy"] == items

    @pytest.mark.asyncio
    async def test_json_parses_fenced_block(self, collaborators, settings):
        """Test parsing JSON out of a fenced model reply."""
        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: p, type: json, source: reply, saveTo: data}\n",
            variables={"reply": 'Here you go:\n```json\n{"score": 7, "tags": ["a"]}\n```'},
        )

        assert result.variables["data"] == {"score": 7, "tags": ["a"]}

    @pytest.mark.asyncio
    async def test_json_invalid(self, collaborators, settings):
        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: p, type: json, source: reply, saveTo: data}\n",
            variables={"reply": "not json"},
        )

        assert result.status == RunStatus.FAILED
        assert "Failed to parse JSON" in result.error


class TestHttpHandlers:
    """Tests for http and mcp nodes."""

    @pytest.mark.asyncio
    async def test_get_text_response(self, collaborators, http, settings):
        """Test a GET request storing the body and status."""
        http.request.return_value = HttpResponse(
            status=200, headers={"Content-Type": "application/json"}, body=b'{"ok":true}'
        )

        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - id: fetch
    type: http
    url: "https://api.example.com/items/{{id}}"
    body: ignored
    saveTo: response
    saveStatus: status
""",
            variables={"id": 7},
        )

        assert result.success
        assert result.variables["response"] == '{"ok":true}'
        assert result.variables["status"] == 200
        call = http.request.await_args
        assert call.args[0] == "https://api.example.com/items/7"
        assert call.kwargs["method"] == "GET"
        assert call.kwargs["body"] is None

    @pytest.mark.asyncio
    async def test_post_json_body(self, collaborators, http, settings):
        """Test that JSON bodies are resolved and typed."""
        http.request.return_value = HttpResponse(status=201, body=b"created")

        await _run(
            collaborators,
            settings,
            """
nodes:
  - id: post
    type: http
    url: https://api.example.com/search
    method: post
    headers: "X-Token: abc"
    body: '{"q": "{{query:json}}"}'
""",
            variables={"query": 'say "hi"'},
        )

        call = http.request.await_args
        assert call.kwargs["method"] == "POST"
        assert call.kwargs["body"] == '{"q": "say \\"hi\\""}'
        assert call.kwargs["headers"] == {"X-Token": "abc", "Content-Type": "application/json"}

    @pytest.mark.asyncio
    async def test_form_data_with_file(self, collaborators, http, settings):
        """Test form-data bodies carrying file data."""
        http.request.return_value = HttpResponse(status=200)
        upload = FileData.from_bytes("scans/page.pdf", b"%PDF").to_dict()

        await _run(
            collaborators,
            settings,
            """
nodes:
  - id: upload
    type: http
    url: https://api.example.com/upload
    method: POST
    contentType: form-data
    body: '{"file": "{{upload}}", "title": "{{name}}"}'
""",
            variables={"upload": upload, "name": "Report"},
        )

        body = http.request.await_args.kwargs["body"]
        assert body["title"] == "Report"
        assert isinstance(body["file"], FileData)
        assert body["file"].raw_bytes() == b"%PDF"

    @pytest.mark.asyncio
    async def test_throw_on_error(self, collaborators, http, settings):
        """Test that throwOnError fails on 4xx responses."""
        http.request.return_value = HttpResponse(status=404, body=b"missing")

        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - id: fetch
    type: http
    url: https://api.example.com/x
    throwOnError: true
""",
        )

        assert result.status == RunStatus.FAILED
        assert "HTTP 404" in result.error

    @pytest.mark.asyncio
    async def test_error_status_without_throw(self, collaborators, http, settings):
        """Test that error statuses are stored when throwOnError is off."""
        http.request.return_value = HttpResponse(
            status=500, headers={"Content-Type": "text/plain"}, body=b"oops"
        )

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: f, type: http, url: 'https://x', saveTo: body, saveStatus: code}\n",
        )

        assert result.success
        assert result.variables["code"] == 500
        assert result.variables["body"] == "oops"

    @pytest.mark.asyncio
    async def test_binary_response(self, collaborators, http, settings):
        """Test that binary responses become file data."""
        http.request.return_value = HttpResponse(
            status=200, headers={"content-type": "image/png"}, body=b"\x89PNG"
        )

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: f, type: http, url: 'https://cdn.example.com/img/logo.png', saveTo: image}\n",
        )

        image = result.variables["image"]
        assert image["contentType"] == "binary"
        assert image["basename"] == "logo.png"
        assert image["mimeType"] == "image/png"
        assert base64.b64decode(image["data"]) == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_transport_error(self, collaborators, http, settings):
        http.request.side_effect = ConnectionError("refused")

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: f, type: http, url: 'https://down.example.com'}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "HTTP request failed" in result.error

    @pytest.mark.asyncio
    async def test_mcp_tool_call(self, collaborators, tools, settings):
        """Test calling a remote tool with resolved arguments."""
        tools.call_tool.return_value = ToolCallResult(
            content=[{"type": "text", "text": "42"}],
            ui={"resourceUri": "ui://chart"},
        )

        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - id: ask
    type: mcp
    url: http://localhost:8000/mcp
    tool: search
    args: '{"query": "{{topic}}", "limit": 3}'
    headers: '{"Authorization": "Bearer {{token}}"}'
    saveTo: answer
    saveUiTo: ui
""",
            variables={"topic": "ai", "token": "t0k"},
        )

        assert result.success
        assert result.variables["answer"] == "42"
        assert result.variables["ui"]["uiResource"] == {"resourceUri": "ui://chart"}
        tools.call_tool.assert_awaited_once_with(
            "http://localhost:8000/mcp",
            "search",
            {"query": "ai", "limit": 3},
            {"Authorization": "Bearer t0k"},
        )

    @pytest.mark.asyncio
    async def test_mcp_tool_error(self, collaborators, tools, settings):
        tools.call_tool.return_value = ToolCallResult(
            content=[{"type": "text", "text": "bad input"}], is_error=True
        )

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: m, type: mcp, url: 'http://x', tool: t}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "MCP tool execution failed: bad input" in result.error


class TestCommandHandler:
    """Tests for the command node."""

    @pytest.mark.asyncio
    async def test_command_options(self, collaborators, commands, settings):
        """Test model, retrieval, tools and attachments passed to the provider."""
        commands.run.return_value = CommandResult(text="done")
        variables = {
            "img": FileData.from_bytes("pics/a.png", b"\x89PNG").to_dict(),
            "doc": FileData.from_text("notes/b.md", "text").to_dict(),
        }

        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - id: ask
    type: command
    prompt: Describe the image
    model: small-model
    ragSetting: __websearch__
    mcpServers: "srv1, srv2"
    attachments: img, doc
    saveTo: reply
""",
            variables=variables,
        )

        assert result.variables["reply"] == "done"
        call = commands.run.await_args
        assert call.args[0] == "Describe the image"
        assert call.kwargs["model"] == "small-model"
        assert call.kwargs["rag_setting"] == "__websearch__"
        assert call.kwargs["tools"] == {"mcpServers": ["srv1", "srv2"]}
        attachments = call.kwargs["attachments"]
        assert [a.basename for a in attachments] == ["a.png"]

    @pytest.mark.asyncio
    async def test_no_rag_setting(self, collaborators, commands, settings):
        commands.run.return_value = CommandResult(text="ok")

        await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: c, type: command, prompt: hi, ragSetting: __none__}\n",
        )

        assert commands.run.await_args.kwargs["rag_setting"] is None
        assert commands.run.await_args.kwargs["attachments"] is None

    @pytest.mark.asyncio
    async def test_generated_images(self, collaborators, commands, settings):
        """Test that generated images are stored as file data."""
        commands.run.return_value = CommandResult(
            text="",
            images=[{"mimeType": "image/png", "contentType": "binary", "data": "aGVsbG8="}],
        )

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: c, type: command, prompt: draw, saveImageTo: picture}\n",
        )

        picture = result.variables["picture"]
        assert picture["basename"] == "generated-image-1.png"
        assert picture["data"] == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_missing_prompt(self, collaborators, settings):
        result = await _run(collaborators, settings, "nodes:\n  - {id: c, type: command}\n")

        assert result.status == RunStatus.FAILED
        assert "command node missing 'prompt' property" in result.error


class TestNoteHandlers:
    """Tests for document nodes."""

    @pytest.mark.asyncio
    async def test_note_read(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: r, type: note-read, path: notes/beta, saveTo: text}\n",
        )

        assert result.variables["text"] == "dogs only"

    @pytest.mark.asyncio
    async def test_note_read_missing(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: r, type: note-read, path: notes/ghost, saveTo: text}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "Note not found: notes/ghost.md" in result.error

    @pytest.mark.asyncio
    async def test_note_create_mode_skips_existing(self, vault_collaborators, vault, settings):
        """Test that create mode leaves existing notes alone."""
        result = await _run(
            vault_collaborators,
            settings,
            """
nodes:
  - {id: w, type: note, path: notes/beta, content: new, mode: create, confirm: false, saveTo: outcome}
""",
        )

        assert result.variables["outcome"] == "skipped"
        assert await vault.read("notes/beta.md") == "dogs only"

    @pytest.mark.asyncio
    async def test_note_invalid_mode(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: w, type: note, path: x, mode: replace}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "Invalid note mode" in result.error

    @pytest.mark.asyncio
    async def test_note_search_by_name(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: note-search, query: beta, saveTo: hits}\n",
        )

        assert result.variables["hits"] == [{"name": "beta", "path": "notes/beta.md"}]

    @pytest.mark.asyncio
    async def test_note_search_content(self, vault_collaborators, settings):
        """Test content search with matched snippets."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: note-search, query: cats, searchContent: true, saveTo: hits}\n",
        )

        assert result.variables["hits"] == [
            {"name": "alpha", "path": "notes/alpha.md", "matchedContent": "first line about cats"}
        ]

    @pytest.mark.asyncio
    async def test_note_list_with_tags(self, vault_collaborators, settings):
        """Test listing a folder filtered by tag."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: l, type: note-list, folder: projects, tags: work, saveTo: listing}\n",
        )

        listing = result.variables["listing"]
        assert listing["count"] == 1
        assert listing["totalCount"] == 1
        assert listing["hasMore"] is False
        assert listing["notes"][0]["name"] == "a"
        assert listing["notes"][0]["tags"] == ["#work"]

    @pytest.mark.asyncio
    async def test_note_list_recursive_sorted(self, vault_collaborators, settings):
        """Test recursive listing sorted by name with a limit."""
        result = await _run(
            vault_collaborators,
            settings,
            """
nodes:
  - id: l
    type: note-list
    folder: projects
    recursive: true
    sortBy: name
    sortOrder: asc
    limit: 2
    saveTo: listing
""",
        )

        listing = result.variables["listing"]
        assert [note["name"] for note in listing["notes"]] == ["a", "b"]
        assert listing["totalCount"] == 3
        assert listing["hasMore"] is True

    @pytest.mark.asyncio
    async def test_note_list_invalid_sort(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: l, type: note-list, sortBy: size, saveTo: listing}\n",
        )

        assert result.status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_folder_list(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: f, type: folder-list, folder: projects, saveTo: folders}\n",
        )

        assert result.variables["folders"] == {"folders": ["projects/sub"], "count": 1}

    @pytest.mark.asyncio
    async def test_open(self, collaborators, prompts, settings):
        await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: o, type: open, path: 'daily/{{day}}'}\n",
            variables={"day": "2024-01-01"},
        )

        prompts.open_document.assert_awaited_once_with("daily/2024-01-01.md")


class TestFileHandlers:
    """Tests for file-explorer and file-save."""

    @pytest.mark.asyncio
    async def test_explorer_direct_binary_path(self, vault_collaborators, prompts, settings):
        """Test reading a binary file without a picker."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: e, type: file-explorer, path: img/logo.png, saveTo: file, savePathTo: where}\n",
        )

        file = result.variables["file"]
        assert file["contentType"] == "binary"
        assert file["mimeType"] == "image/png"
        assert base64.b64decode(file["data"]) == b"\x89PNG\r\n"
        assert result.variables["where"] == "img/logo.png"
        prompts.pick_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explorer_create_mode(self, vault_collaborators, prompts, settings):
        """Test naming a new file through the picker."""
        prompts.pick_file.return_value = "exports/report.pdf"

        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: e, type: file-explorer, mode: create, extensions: '.pdf, docx', saveTo: file}\n",
        )

        assert result.variables["file"]["contentType"] == "binary"
        assert result.variables["file"]["data"] == ""
        call = prompts.pick_file.await_args
        assert call.kwargs["create"] is True
        assert call.kwargs["extensions"] == ["pdf", "docx"]

    @pytest.mark.asyncio
    async def test_explorer_cancelled(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: e, type: file-explorer, saveTo: file}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "File selection cancelled by user" in result.error

    @pytest.mark.asyncio
    async def test_file_save_text_adds_extension(self, vault_collaborators, vault, settings):
        """Test saving text file data, keeping the source extension."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: file-save, source: file, path: out/copy, savePathTo: saved}\n",
            variables={"file": FileData.from_text("notes/a.md", "hello").to_dict()},
        )

        assert result.variables["saved"] == "out/copy.md"
        assert await vault.read("out/copy.md") == "hello"

    @pytest.mark.asyncio
    async def test_file_save_binary(self, vault_collaborators, vault, settings):
        await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: file-save, source: file, path: out/image.png}\n",
            variables={"file": FileData.from_bytes("x.png", b"\x00\x01").to_dict()},
        )

        assert await vault.read_bytes("out/image.png") == b"\x00\x01"

    @pytest.mark.asyncio
    async def test_file_save_invalid_source(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: file-save, source: file, path: out/x}\n",
            variables={"file": "plain text"},
        )

        assert result.status == RunStatus.FAILED
        assert "not valid file data" in result.error


class TestPromptHandlers:
    """Tests for prompt-file, prompt-selection and dialog."""

    @pytest.mark.asyncio
    async def test_prompt_file_panel(self, vault_collaborators, prompts, settings):
        """Test picking a file in panel mode."""
        prompts.pick_file.return_value = "notes/alpha"

        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: p, type: prompt-file, saveTo: content, saveFileTo: info}\n",
        )

        assert result.variables["content"] == "first line about cats"
        assert result.variables["info"]["basename"] == "alpha"

    @pytest.mark.asyncio
    async def test_prompt_file_hotkey_uses_active_file(self, vault_collaborators, prompts, settings):
        """Test that hotkey runs use the active document without asking."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: p, type: prompt-file, saveTo: content}\n",
            variables={"__hotkeyActiveFile__": split_path("notes/beta.md")},
            trigger_mode=TriggerMode.HOTKEY,
        )

        assert result.variables["content"] == "dogs only"
        prompts.pick_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prompt_file_force_prompt(self, vault_collaborators, prompts, settings):
        """Test that forcePrompt asks even in hotkey mode."""
        prompts.pick_file.return_value = "notes/alpha.md"

        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: p, type: prompt-file, saveTo: content, forcePrompt: true}\n",
            variables={"__hotkeyActiveFile__": split_path("notes/beta.md")},
            trigger_mode=TriggerMode.HOTKEY,
        )

        assert result.variables["content"] == "first line about cats"

    @pytest.mark.asyncio
    async def test_prompt_file_cancelled(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: p, type: prompt-file, saveTo: content}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "File selection cancelled by user" in result.error

    @pytest.mark.asyncio
    async def test_selection_from_hotkey(self, vault_collaborators, prompts, settings):
        info = {"filePath": "notes/a.md", "startLine": 3, "endLine": 3, "start": 40, "end": 46}

        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: prompt-selection, saveTo: text, saveSelectionTo: sel}\n",
            variables={"__hotkeySelection__": "picked", "__hotkeySelectionInfo__": info},
            trigger_mode=TriggerMode.HOTKEY,
        )

        assert result.variables["text"] == "picked"
        assert result.variables["sel"] == info
        prompts.pick_selection.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_selection_falls_back_to_hotkey_content(self, vault_collaborators, settings):
        """Test that an empty hotkey selection uses the whole document."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: prompt-selection, saveTo: text, saveSelectionTo: sel}\n",
            variables={
                "__hotkeySelection__": "",
                "__hotkeyContent__": "line1\nline2",
                "__hotkeyActiveFile__": split_path("notes/a.md"),
            },
            trigger_mode=TriggerMode.HOTKEY,
        )

        assert result.variables["text"] == "line1\nline2"
        assert result.variables["sel"] == {
            "filePath": "notes/a.md",
            "startLine": 1,
            "endLine": 2,
            "start": 0,
            "end": 11,
        }

    @pytest.mark.asyncio
    async def test_selection_from_event_content(self, vault_collaborators, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: prompt-selection, saveTo: text, saveSelectionTo: sel}\n",
            variables={
                "__eventFileContent__": "event text",
                "__eventFile__": split_path("inbox/x.md"),
            },
            trigger_mode=TriggerMode.EVENT,
        )

        assert result.variables["text"] == "event text"
        assert result.variables["sel"]["filePath"] == "inbox/x.md"
        assert result.variables["sel"]["end"] == 10

    @pytest.mark.asyncio
    async def test_selection_reads_event_document(self, vault_collaborators, settings):
        """Test that event runs without content read the document."""
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: prompt-selection, saveTo: text}\n",
            variables={"__eventFile__": split_path("notes/beta.md")},
            trigger_mode=TriggerMode.EVENT,
        )

        assert result.variables["text"] == "dogs only"

    @pytest.mark.asyncio
    async def test_selection_panel_prompt(self, vault_collaborators, prompts, settings):
        """Test asking for a selection in panel mode."""
        prompts.pick_selection.return_value = SelectionInfo(
            file_path="notes/alpha.md", text="about", start_line=0, end_line=0, start=11, end=16
        )

        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: s, type: prompt-selection, saveTo: text, saveSelectionTo: sel}\n",
        )

        assert result.variables["text"] == "about"
        assert result.variables["sel"]["start"] == 11

    @pytest.mark.asyncio
    async def test_dialog_spec(self, collaborators, prompts, settings):
        """Test the dialog description handed to the prompt provider."""
        prompts.ask.return_value = DialogResult(button="Go", selected=["b"], input="hello")

        result = await _run(
            collaborators,
            settings,
            """
nodes:
  - id: d
    type: dialog
    title: "Pick for {{who}}"
    options: "a, b , c"
    multiSelect: true
    button1: Go
    button2: Stop
    inputTitle: Note
    defaults: '{"input": "{{seed}}", "selected": ["a"]}'
    saveTo: answer
""",
            variables={"who": "Ann", "seed": "draft"},
        )

        spec = prompts.ask.await_args.args[0]
        assert isinstance(spec, DialogSpec)
        assert spec.title == "Pick for Ann"
        assert spec.options == ["a", "b", "c"]
        assert spec.multi_select is True
        assert spec.button2 == "Stop"
        assert spec.defaults == {"input": "draft", "selected": ["a"]}
        assert result.variables["answer"] == {"button": "Go", "selected": ["b"], "input": "hello"}

    @pytest.mark.asyncio
    async def test_dialog_dismissed(self, collaborators, settings):
        result = await _run(collaborators, settings, "nodes:\n  - {id: d, type: dialog}\n")

        assert result.status == RunStatus.FAILED
        assert "Dialog cancelled by user" in result.error


class TestIntegrationHandlers:
    """Tests for rag-sync, obsidian-command and sleep."""

    @pytest.mark.asyncio
    async def test_rag_sync(self, vault_collaborators, rag, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: r, type: rag-sync, path: notes/alpha, ragSetting: main, saveTo: sync}\n",
        )

        rag.sync.assert_awaited_once_with("notes/alpha.md", None, "main")
        sync = result.variables["sync"]
        assert sync["mode"] == "sync"
        assert sync["fileId"] == "file-1"
        assert sync["deletedOldPath"] is False

    @pytest.mark.asyncio
    async def test_rag_sync_rename(self, vault_collaborators, rag, settings):
        result = await _run(
            vault_collaborators,
            settings,
            """
nodes:
  - {id: r, type: rag-sync, path: notes/alpha, oldPath: notes/old, ragSetting: main, saveTo: sync}
""",
        )

        rag.sync.assert_awaited_once_with("notes/alpha.md", "notes/old.md", "main")
        assert result.variables["sync"]["mode"] == "rename"
        assert result.variables["sync"]["deletedOldPath"] is True

    @pytest.mark.asyncio
    async def test_rag_sync_missing_note(self, vault_collaborators, rag, settings):
        result = await _run(
            vault_collaborators,
            settings,
            "nodes:\n  - {id: r, type: rag-sync, path: notes/ghost, ragSetting: main}\n",
        )

        assert result.status == RunStatus.FAILED
        rag.sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_host_command(self, collaborators, host, settings):
        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: c, type: obsidian-command, command: 'editor:save-file', saveTo: ran}\n",
        )

        host.execute.assert_awaited_once_with("editor:save-file", None)
        assert result.variables["ran"]["executed"] is True

    @pytest.mark.asyncio
    async def test_host_command_unknown(self, collaborators, host, settings):
        host.execute.return_value = False

        result = await _run(
            collaborators,
            settings,
            "nodes:\n  - {id: c, type: obsidian-command, command: nope}\n",
        )

        assert result.status == RunStatus.FAILED
        assert "Command not found: nope" in result.error

    @pytest.mark.asyncio
    async def test_sleep(self, collaborators, settings):
        result = await _run(collaborators, settings, "nodes:\n  - {id: s, type: sleep, duration: 5}\n")

        assert result.success
        assert result.record.steps[0].output == {"duration": 5}

    @pytest.mark.asyncio
    async def test_sleep_interrupted_by_cancel(self, collaborators, settings):
        """Test that cancelling a run stops a long sleep right away."""
        engine = WorkflowEngine(collaborators, settings)
        token = CancellationToken()
        asyncio.get_event_loop().call_later(0.05, token.cancel)

        result = await asyncio.wait_for(
            engine.execute(
                WorkflowDefinition.from_yaml("nodes:\n  - {id: s, type: sleep, duration: 60000}\n"),
                cancel_token=token,
            ),
            timeout=2,
        )

        assert result.status == RunStatus.CANCELLED
        assert result.record.steps[0].status == StepStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_missing_collaborator(self, settings):
        """Test that a node fails when its collaborator is not configured."""
        engine = WorkflowEngine(settings=settings)

        result = await engine.execute(
            WorkflowDefinition.from_yaml("nodes:\n  - {id: c, type: command, prompt: hi}\n")
        )

        assert result.status == RunStatus.FAILED
        assert "No 'commands' collaborator configured" in result.error
