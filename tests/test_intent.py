from recall.categories import category_minutes, is_browser, is_ide, is_terminal
from recall.intent import IntentExtractor


def test_ide_title_gives_project_and_file():
    intents = IntentExtractor()
    assert intents.extract_active_project("main.py - recall - Visual Studio Code", "Code", "") == \
        "Working on recall: main.py"


def test_terminal_cd_and_build_commands():
    intents = IntentExtractor()
    assert intents.extract_active_project(None, "kitty", "$ cd ~/src/recall\n") == "Working in: recall"
    assert intents.extract_active_project(None, "Terminal", "xcodebuild -scheme App build") == "Building: App"
    assert intents.extract_active_project(None, "Terminal", "xcodebuild build") == "Building Xcode project"
    assert intents.extract_active_project(None, "Terminal", "npm run dev") == "Running: npm run dev"


def test_files_from_title_and_file_operations():
    intents = IntentExtractor()
    files = intents.extract_files_edited("main.py - recall - Code", "Edit file: src/utils.ts done")
    assert files == ["main.py", "utils.ts"]


def test_noise_is_not_a_source_file():
    intents = IntentExtractor()
    assert not intents.is_valid_source_file("c.c")
    assert not intents.is_valid_source_file("go.ts")
    assert not intents.is_valid_source_file("com.example.py")
    assert not intents.is_valid_source_file("archive.zip")
    assert intents.is_valid_source_file("scheduler.py")


def test_searches_only_in_browsers():
    intents = IntentExtractor()
    text = "https://www.google.com/search?q=python+dataclass&x=1"
    assert intents.extract_searches("Firefox", text) == ["python dataclass"]
    assert intents.extract_searches("Code", text) == []


def test_key_actions():
    intents = IntentExtractor()
    assert intents.extract_key_actions('git commit -m "fix parser"') == ["Committed: fix parser"]
    assert intents.extract_key_actions("git commit") == ["Git commit"]
    assert intents.extract_key_actions("** BUILD SUCCEEDED **") == ["Build succeeded"]
    assert intents.extract_key_actions("nothing happened") == []


def test_extract_combines_in_priority_order():
    intents = IntentExtractor()
    result = intents.extract('git commit -m "fix bug"', "main.py - recall - Code", "Code")
    assert result == ["Working on recall: main.py", "Edited: main.py", "Committed: fix bug"]


def test_projects_from_titles_and_code_hosting_urls():
    intents = IntentExtractor()
    projects = intents.extract_projects(["notes - myproject", None], ["https://github.com/acme/widgets"])
    assert projects == ["acme/widgets", "myproject"]


def test_app_categories():
    assert is_ide("jetbrains-pycharm")
    assert is_terminal("kitty")
    assert is_browser("Firefox")
    assert not is_browser("Slack")
    assert category_minutes({"Code": 12, "Firefox": 4, "Slack": 3, "Other": 9}) == {
        "browser": 4, "dev": 12, "communication": 3,
    }
