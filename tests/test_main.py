from webtrawl.main import EXIT_CONFIG_ERROR, build_overrides, main, parse_args
from webtrawl.crawler.modes import CrawlMode
from webtrawl.utils.config import load_config


def test_positional_and_repeated_hosts():
    args = parse_args(["https://a.test/", "-H", "https://b.test/", "-H", "https://c.test/"])

    overrides = build_overrides(args)

    assert overrides["seed_urls"] == ["https://a.test/", "https://b.test/", "https://c.test/"]


def test_flags_map_to_config():
    args = parse_args([
        "https://example.test/", "-S", "--no-scoped", "-r", "100", "-t", "7",
        "-u", "agent/1", "-i", "200", "301", "-e", "500", "-vv", "-q",
    ])

    config = load_config(overrides=build_overrides(args), environ={})

    assert config.crawler.mode is CrawlMode.SHALLOW
    assert config.crawler.scoped is False
    assert config.crawler.rate_limit_ms == 100
    assert config.crawler.max_threads == 7
    assert config.crawler.user_agent == "agent/1"
    assert config.crawler.status_include == (200, 301)
    assert config.crawler.status_exclude == (500,)
    assert config.logging.level == "DEBUG"
    assert config.output.quiet is True


def test_unset_flags_leave_defaults():
    args = parse_args(["https://example.test/"])

    config = load_config(overrides=build_overrides(args), environ={})

    assert config.crawler.scoped is True
    assert config.crawler.mode is CrawlMode.DEEP
    assert config.logging.level == "WARNING"
    assert config.monitoring.metrics_enabled is False


def test_metrics_port_enables_metrics():
    args = parse_args(["https://example.test/", "--metrics-port", "9100"])

    config = load_config(overrides=build_overrides(args), environ={})

    assert config.monitoring.metrics_enabled is True
    assert config.monitoring.prometheus_port == 9100


def test_invalid_seed_exits_with_config_error(monkeypatch, capsys):
    monkeypatch.delenv("WEBTRAWL_HOSTS", raising=False)

    assert main(["not-a-url"]) == EXIT_CONFIG_ERROR
    assert "Error:" in capsys.readouterr().err


def test_unreadable_wordlist_exits_with_config_error(tmp_path, capsys):
    code = main(["https://example.test/", "-w", str(tmp_path / "missing.txt")])

    assert code == EXIT_CONFIG_ERROR


def test_non_numeric_timeout_in_file_exits_with_config_error(tmp_path, capsys):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("crawler:\n  seed_urls: [https://example.test/]\n  request_timeout: fast\n")

    assert main(["--config", str(config_file)]) == EXIT_CONFIG_ERROR
    assert "request_timeout" in capsys.readouterr().err
