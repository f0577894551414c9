import asyncio

from popcatalog import CatalogConfig, MetricId, PopCatalog, SearchRequest


def test_load_and_query(catalog_dir):
    pop = PopCatalog.load(CatalogConfig(base_path=str(catalog_dir)))

    assert len(pop.search(SearchRequest(country="be"))) == 5
    assert pop.expand(MetricId.from_id("^be-[12]$")) == [
        MetricId.from_id("be-1"),
        MetricId.from_id("be-2"),
    ]
    plan = pop.plan([MetricId.common_name("Total population")], geometry="lsoa")
    assert plan.resolved_metric_ids == (MetricId.from_id("uk-3"),)


def test_config_controls_case_sensitivity(catalog):
    insensitive = PopCatalog(catalog, CatalogConfig(case_sensitive=False))
    assert len(insensitive.expand(MetricId.common_name("adults"))) == 3
    assert PopCatalog(catalog).expand(MetricId.common_name("adults")) == []


def test_async_api(catalog_dir):
    async def run():
        pop = await PopCatalog.aload(CatalogConfig(base_path=str(catalog_dir)), countries=["uk"])
        results = await pop.asearch(SearchRequest().with_geometry_level("oa"))
        expanded = await pop.aexpand(MetricId.hxl("ind$"))
        plan = await pop.aplan([MetricId.hxl(r"#population\+ind")])
        return results, expanded, plan

    results, expanded, plan = asyncio.run(run())

    assert results.frame["id"].to_list() == ["uk-1", "uk-2"]
    assert len(expanded) == 2
    # oa and lsoa tie on one row each
    assert plan.geometry == "lsoa"
    assert "other available levels: oa" in plan.advisory_notes
