import json

import pytest

import markdown_compactor
import markdown_splitter
import zulip_cleaner
from harvest_state import MessageRecord
from markdown_compactor import FILE_SEPARATOR, distribute_into_groups
from markdown_splitter import sanitize_filename
from zulip_cleaner import collapse_consecutive_messages, messages_to_markdown


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


# --- stage 2: cleaner -------------------------------------------------------


def test_collapse_joins_same_sender_runs():
    messages = [
        MessageRecord("a", "x"),
        MessageRecord("a", "y"),
        MessageRecord("b", "z"),
        MessageRecord("a", "w"),
    ]

    assert collapse_consecutive_messages(messages) == [
        MessageRecord("a", "x\n\ny"),
        MessageRecord("b", "z"),
        MessageRecord("a", "w"),
    ]


def test_messages_to_markdown_empty_topic():
    assert messages_to_markdown([]) == ""


def test_cleaner_then_splitter_round_trip(tmp_path):
    harvest = {
        "t": [
            {"sender": "a", "content": "x"},
            {"sender": "a", "content": "y"},
            {"sender": "b", "content": "z"},
        ]
    }
    raw = tmp_path / "messages.json"
    cleaned = tmp_path / "cleaned" / "messages_cleaned.json"
    write_json(raw, harvest)

    assert zulip_cleaner.main([str(raw), str(cleaned)]) == 0
    cleaned_data = json.loads(cleaned.read_text(encoding="utf-8"))
    assert cleaned_data == {"t": "**a:** x\n\ny\n\n**b:** z"}

    out_dir = tmp_path / "topics"
    assert markdown_splitter.main([str(cleaned), str(out_dir)]) == 0
    assert (out_dir / "t.md").read_text(encoding="utf-8") == "# t\n\n**a:** x\n\ny\n\n**b:** z"


def test_cleaner_missing_input_exits_with_error(tmp_path, capsys):
    code = zulip_cleaner.main([str(tmp_path / "absent.json"), str(tmp_path / "out.json")])

    assert code == 1
    assert "does not exist" in capsys.readouterr().err


def test_cleaner_rejects_malformed_messages(tmp_path):
    raw = tmp_path / "messages.json"
    write_json(raw, {"t": [{"sender": "a"}]})

    assert zulip_cleaner.main([str(raw), str(tmp_path / "out.json")]) == 1


def test_cleaner_rejects_invalid_json(tmp_path, capsys):
    raw = tmp_path / "messages.json"
    raw.write_text("{not json", encoding="utf-8")

    assert zulip_cleaner.main([str(raw), str(tmp_path / "out.json")]) == 1
    assert "Invalid JSON" in capsys.readouterr().err


def test_cleaner_missing_arguments_prints_usage(capsys):
    with pytest.raises(SystemExit) as excinfo:
        zulip_cleaner.main(["only-one.json"])

    assert excinfo.value.code == 1
    assert "usage:" in capsys.readouterr().err


# --- stage 3: splitter ------------------------------------------------------


def test_sanitize_filename_strips_unsafe_characters():
    name = sanitize_filename("Q&A: <setup>")

    assert not any(ch in name for ch in '<>:"/\\|?*')
    assert not any(ch.isspace() for ch in name)
    assert name == name.lower()
    assert not name.startswith("_") and not name.endswith("_")
    assert name == "q&a_setup"


def test_sanitize_filename_collapses_underscores():
    assert sanitize_filename("  Build / Deploy   Issues  ") == "build_deploy_issues"


def test_splitter_defaults_to_input_directory(tmp_path):
    source = tmp_path / "cleaned.json"
    write_json(source, {"Hello World": "**a:** hi"})

    assert markdown_splitter.main([str(source)]) == 0
    assert (tmp_path / "hello_world.md").read_text(encoding="utf-8") == "# Hello World\n\n**a:** hi"


def test_splitter_keeps_colliding_topics_apart(tmp_path):
    source = tmp_path / "cleaned.json"
    write_json(source, {"Setup?": "one", "setup": "two", "???": "three"})
    out_dir = tmp_path / "out"

    assert markdown_splitter.main([str(source), str(out_dir)]) == 0
    assert (out_dir / "setup.md").read_text(encoding="utf-8") == "# Setup?\n\none"
    assert (out_dir / "setup_2.md").read_text(encoding="utf-8") == "# setup\n\ntwo"
    assert (out_dir / "topic.md").read_text(encoding="utf-8") == "# ???\n\nthree"


def test_splitter_write_failure_is_isolated(tmp_path, capsys):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    # A directory squatting on the target name makes that one write fail.
    (out_dir / "blocked.md").mkdir()

    created = markdown_splitter.split_topics({"blocked": "x", "fine": "y"}, out_dir)

    assert created == 1
    assert (out_dir / "fine.md").exists()
    assert "blocked.md" in capsys.readouterr().err


def test_splitter_missing_input_exits_with_error(tmp_path):
    assert markdown_splitter.main([str(tmp_path / "absent.json")]) == 1


# --- stage 4: compactor -----------------------------------------------------


def test_distribute_round_robin():
    groups = distribute_into_groups(list("abcdefg"), 3)

    assert [len(group) for group in groups] == [3, 2, 2]
    assert groups[0] == ["a", "d", "g"]


def test_distribute_more_groups_than_items():
    assert distribute_into_groups(["a", "b"], 5) == [["a"], ["b"]]


def test_compactor_reproduces_every_file_once(tmp_path):
    source = tmp_path / "topics"
    source.mkdir()
    originals = {f"topic_{idx}": f"# Topic {idx}\n\nbody {idx}" for idx in range(7)}
    for name, content in originals.items():
        (source / f"{name}.md").write_text(content, encoding="utf-8")
    (source / "notes.txt").write_text("ignored", encoding="utf-8")
    out_dir = tmp_path / "groups"

    assert markdown_compactor.main([str(source), str(out_dir), "3"]) == 0

    produced = sorted(path.name for path in out_dir.iterdir())
    assert produced == [
        "group_1_of_3_3_files.md",
        "group_2_of_3_2_files.md",
        "group_3_of_3_2_files.md",
    ]

    bodies = []
    sources = []
    for path in sorted(out_dir.iterdir()):
        for block in path.read_text(encoding="utf-8").split(FILE_SEPARATOR):
            if block.startswith("<!-- Source:"):
                sources.append(block)
            else:
                bodies.append(block)

    assert sorted(bodies) == sorted(originals.values())
    assert sorted(sources) == sorted(f"<!-- Source: {name}.md -->" for name in originals)


def test_compactor_empty_directory_is_not_an_error(tmp_path, capsys):
    source = tmp_path / "empty"
    source.mkdir()

    assert markdown_compactor.main([str(source), str(tmp_path / "out"), "2"]) == 0
    assert "No markdown files" in capsys.readouterr().err


def test_compactor_missing_directory_exits_with_error(tmp_path):
    assert markdown_compactor.main([str(tmp_path / "nope"), str(tmp_path / "out"), "2"]) == 1


@pytest.mark.parametrize("count", ["0", "-3", "many"])
def test_compactor_rejects_bad_group_count(tmp_path, count, capsys):
    with pytest.raises(SystemExit) as excinfo:
        markdown_compactor.main([str(tmp_path), str(tmp_path / "out"), count])

    assert excinfo.value.code == 1
    assert "positive integer" in capsys.readouterr().err
