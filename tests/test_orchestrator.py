"""Tests for the conversation orchestrator."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from openai import OpenAIError

from branchcraft.errors import MalformedReplyError, TransportError
from branchcraft.files import apply_suggestions
from branchcraft.models import BranchRequest, EditSuggestion, OrchestrationState
from branchcraft.orchestrator import Orchestrator
from branchcraft.prompts import SYSTEM_PROMPT
from branchcraft.tokens import estimate_tokens

HEALTH_REPLY = (
    "```json\n"
    + json.dumps([{"filePath": "src/health.ts", "fileContent": "export const health = () => ({ ok: true })\n"}])
    + "\n```"
)


def _make_repo(root: Path) -> list[str]:
    (root / "src").mkdir()
    (root / "src" / "server.ts").write_text("import { routes } from './routes'\n", encoding="utf-8")
    (root / "src" / "routes.ts").write_text("export const routes = []\n", encoding="utf-8")
    return ["src/server.ts", "src/routes.ts"]


def _snapshot_tree(root: Path) -> dict[str, str]:
    return {
        str(p.relative_to(root)): p.read_text(encoding="utf-8")
        for p in root.rglob("*")
        if p.is_file() and not p.name.startswith("log.branchcraft")
    }


@pytest.mark.asyncio
async def test_health_check_end_to_end(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    before = _snapshot_tree(tmp_path)
    gateway = make_gateway(["src/routes.ts", "OK", "OK", HEALTH_REPLY])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    result = await orchestrator.run(BranchRequest(feature="add a health check endpoint"), candidates)

    assert orchestrator.state is OrchestrationState.DONE
    assert result.requested_files == ["src/routes.ts"]
    assert result.missing_files == []
    assert result.suggestions == [
        EditSuggestion(file_path="src/health.ts", file_content="export const health = () => ({ ok: true })\n")
    ]
    assert result.policy == "send-all"
    assert result.request_count == 4

    # the routes file content was sent, the server file was not
    transmitted = [m["content"] for m in gateway.client.calls[2]["messages"]]
    assert any("export const routes = []" in c for c in transmitted)
    assert not any("import { routes }" in c for c in transmitted)

    report = apply_suggestions(result.suggestions, tmp_path)
    assert report.written == ["src/health.ts"]
    after = _snapshot_tree(tmp_path)
    assert set(after) - set(before) == {"src/health.ts"}
    assert all(after[path] == content for path, content in before.items())

    log = (tmp_path / "log.branchcraft.conversation.txt").read_text(encoding="utf-8")
    assert "add a health check endpoint" in log
    assert "export const routes = []" in log
    assert HEALTH_REPLY in log
    assert log.rstrip().endswith("src/routes.ts")
    assert (tmp_path / "log.branchcraft.latest.json").exists()


@pytest.mark.asyncio
async def test_transcript_seeding_and_file_list_purge(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["src/server.ts", "OK", "OK", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)
    request = BranchRequest(feature="logging", languages="TypeScript", special_instructions="use pino")

    await orchestrator.run(request, candidates)

    first_call = gateway.client.calls[0]["messages"]
    assert [m["role"] for m in first_call] == ["system", "user", "user", "user"]
    assert first_call[0]["content"] == SYSTEM_PROMPT
    assert "use pino" in first_call[1]["content"]
    assert "logging" in first_call[2]["content"]
    assert "- src/server.ts\n- src/routes.ts" in first_call[3]["content"]

    final_call = gateway.client.calls[-1]["messages"]
    assert not any("The repository contains the following files" in m["content"] for m in final_call)
    assert "TypeScript" in final_call[-1]["content"]
    assert not any("The repository contains" in m.content for m in orchestrator.transcript)


@pytest.mark.asyncio
async def test_missing_and_fuzzy_matched_paths(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["src/route.ts, src/ghost.ts", "OK", "OK", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    result = await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert result.missing_files == ["src/ghost.ts"]
    assert orchestrator.missing[0].path == "src/ghost.ts"
    assert any("export const routes = []" in m.content for m in orchestrator.transcript)
    assert len(gateway.client.calls) == 4


@pytest.mark.asyncio
async def test_batched_transmission_sends_files_with_the_suggestion_request(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["src/server.ts, src/routes.ts", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path, acknowledge_each=False)

    result = await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert result.suggestions == []
    assert len(gateway.client.calls) == 2
    last = [m["content"] for m in gateway.client.calls[1]["messages"]]
    assert sum("File transmission start" in c for c in last) == 2


@pytest.mark.asyncio
async def test_no_files_requested_goes_straight_to_suggestions(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    result = await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert result.requested_files == []
    assert len(gateway.client.calls) == 2


@pytest.mark.asyncio
async def test_malformed_suggestions_abort_with_raw_reply(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["", "Here is your code: [{broken"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    with pytest.raises(MalformedReplyError) as excinfo:
        await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert excinfo.value.raw_reply == "Here is your code: [{broken"
    assert orchestrator.state is OrchestrationState.SUGGESTION_REQUEST
    assert (tmp_path / "log.branchcraft.conversation.txt").exists()


@pytest.mark.asyncio
async def test_transport_error_propagates(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway([OpenAIError("connection reset")])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    with pytest.raises(TransportError):
        await orchestrator.run(BranchRequest(feature="x"), candidates)
    assert orchestrator.state is OrchestrationState.FILE_DISCOVERY


@pytest.mark.asyncio
async def test_orchestrator_runs_only_once(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)
    await orchestrator.run(BranchRequest(feature="x"), candidates)

    with pytest.raises(RuntimeError):
        await orchestrator.run(BranchRequest(feature="x"), candidates)


@pytest.mark.asyncio
async def test_suggested_code_keeps_its_backslashes(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    code = 'import re\n\nDIGITS = re.compile(r"\\d+")\nprint("a\\nb")\n'
    reply = "```json\n" + json.dumps([{"filePath": "src/digits.py", "fileContent": code}]) + "\n```"
    gateway = make_gateway(["", reply])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    result = await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert result.suggestions == [EditSuggestion(file_path="src/digits.py", file_content=code)]
    apply_suggestions(result.suggestions, tmp_path)
    assert (tmp_path / "src" / "digits.py").read_text(encoding="utf-8") == code


@pytest.mark.asyncio
async def test_feature_request_survives_trimming_when_instructions_are_long(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["", "[]"])
    orchestrator = Orchestrator(gateway, 200, root=tmp_path, log_dir=tmp_path)
    request = BranchRequest(feature="add a health check endpoint", special_instructions="be careful " * 80)

    await orchestrator.run(request, candidates)

    for call in gateway.client.calls:
        sent = [m["content"] for m in call["messages"]]
        assert sum(estimate_tokens(c) for c in sent) <= 200
        assert any("requested the following feature: add a health check endpoint" in c for c in sent)
        assert not any("be careful" in c for c in sent)


@pytest.mark.asyncio
async def test_names_resolving_to_the_same_file_send_it_once(make_gateway, tmp_path) -> None:
    candidates = _make_repo(tmp_path)
    gateway = make_gateway(["src/routes.ts, src/route.ts", "OK", "OK", "[]"])
    orchestrator = Orchestrator(gateway, 2048, root=tmp_path, log_dir=tmp_path)

    result = await orchestrator.run(BranchRequest(feature="x"), candidates)

    assert result.requested_files == ["src/routes.ts", "src/route.ts"]
    assert result.missing_files == []
    assert sum("File transmission start" in m.content for m in orchestrator.transcript) == 1
    assert len(gateway.client.calls) == 4
    assert result.request_count == 4
