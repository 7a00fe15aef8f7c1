from webtrawl.crawler.modes import (
    CrawlMode, DeepCrawl, ForcedBrowse, FuzzStrategy, ShallowCrawl, create_strategy
)


def test_forced_browse_synthesizes_one_target_per_word():
    strategy = ForcedBrowse(["https://example.test"], ["admin", "login"])

    targets = list(strategy.seed_targets())

    assert [t.url for t in targets] == ["https://example.test/admin", "https://example.test/login"]
    assert all(t.depth == 0 for t in targets)
    assert not any(strategy.should_expand(t) for t in targets)


def test_forced_browse_avoids_double_slashes():
    strategy = ForcedBrowse(["https://example.test/app/"], ["/admin"])

    assert [t.url for t in strategy.seed_targets()] == ["https://example.test/app/admin"]


def test_fuzz_substitutes_marker():
    strategy = FuzzStrategy(["https://example.test/item?id=FUZZ"], ["1", "2"])

    assert [t.url for t in strategy.seed_targets()] == [
        "https://example.test/item?id=1",
        "https://example.test/item?id=2",
    ]


def test_fuzz_seed_without_marker_probed_once():
    strategy = FuzzStrategy(["https://example.test/static"], ["1", "2"])

    assert [t.url for t in strategy.seed_targets()] == ["https://example.test/static"]


def test_shallow_never_expands():
    strategy = ShallowCrawl(["https://example.test/"])
    targets = list(strategy.seed_targets())

    assert [t.url for t in targets] == ["https://example.test/"]
    assert strategy.should_expand(targets[0]) is False


def test_deep_respects_max_depth():
    strategy = DeepCrawl(["https://example.test/"], max_depth=1)
    seed = next(strategy.seed_targets())
    child = seed.child("https://example.test/a")

    assert strategy.should_expand(seed)
    assert not strategy.should_expand(child)
    assert DeepCrawl(["https://example.test/"]).should_expand(child.child("https://example.test/b"))


def test_create_strategy_selects_by_mode(make_config):
    config = make_config("https://example.test/", mode=CrawlMode.FORCED_BROWSE, wordlist=("a",))

    strategy = create_strategy(config)

    assert isinstance(strategy, ForcedBrowse)
    assert strategy.mode is CrawlMode.FORCED_BROWSE
    assert isinstance(create_strategy(make_config("https://example.test/")), DeepCrawl)


def test_mode_properties():
    assert CrawlMode.DEEP.expands
    assert not CrawlMode.SHALLOW.expands
    assert CrawlMode.FUZZ.needs_wordlist
    assert not CrawlMode.DEEP.needs_wordlist
