from structlog.testing import capture_logs

from meshroute.core.config import CompilerConfig
from meshroute.domain.models import Route
from meshroute.resources.naming import virtual_service_name
from meshroute.resources.virtual_service import VirtualServiceBuilder

GATEWAYS = ["some-gateway0", "some-gateway1"]


def _dest(guid, weight=None, port=8080, app="app-guid-0", process="process-type-1"):
    return {
        "guid": guid,
        "port": port,
        "weight": weight,
        "app": {"guid": app, "process": {"type": process}},
    }


def _route(
    name,
    host="test0",
    domain="domain0.example.com",
    path="",
    destinations=(),
    internal=False,
    namespace="workload-namespace",
    space="space-guid-0",
    org="org-guid-0",
):
    return Route.model_validate(
        {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": {
                    "cloudfoundry.org/space_guid": space,
                    "cloudfoundry.org/org_guid": org,
                },
            },
            "spec": {
                "host": host,
                "path": path,
                "url": f"{host}.{domain}{path}",
                "domain": {"name": domain, "internal": internal},
                "destinations": list(destinations),
            },
        }
    )


def _weights(http_route):
    return [d.weight for d in http_route.route]


def test_builds_one_virtual_service_per_fqdn():
    routes = [
        _route(
            "route-guid-0",
            path="/path0",
            destinations=[
                _dest("route-0-destination-guid-0", weight=91, port=9000, app="app-guid-0"),
                _dest("route-0-destination-guid-1", weight=9, port=9001, app="app-guid-1"),
            ],
        ),
        _route(
            "route-guid-1",
            host="test1",
            domain="domain1.example.com",
            space="space-guid-1",
            org="org-guid-1",
            destinations=[_dest("route-1-destination-guid-0", weight=100, app="app-guid-1")],
        ),
    ]

    result = VirtualServiceBuilder(GATEWAYS).build(routes)
    assert result.skipped == ()
    assert [vs.fqdn for vs in result.virtual_services] == [
        "test0.domain0.example.com",
        "test1.domain1.example.com",
    ]

    first = result.virtual_services[0].to_manifest()
    assert first == {
        "apiVersion": "networking.istio.io/v1alpha3",
        "kind": "VirtualService",
        "metadata": {
            "name": virtual_service_name("test0.domain0.example.com"),
            "namespace": "workload-namespace",
            "labels": {},
            "annotations": {"cloudfoundry.org/fqdn": "test0.domain0.example.com"},
        },
        "spec": {
            "hosts": ["test0.domain0.example.com"],
            "gateways": ["some-gateway0", "some-gateway1"],
            "http": [
                {
                    "match": [{"uri": {"prefix": "/path0"}}],
                    "route": [
                        {
                            "destination": {"host": "s-route-0-destination-guid-0"},
                            "headers": {
                                "request": {
                                    "set": {
                                        "CF-App-Id": "app-guid-0",
                                        "CF-App-Process-Type": "process-type-1",
                                        "CF-Space-Id": "space-guid-0",
                                        "CF-Organization-Id": "org-guid-0",
                                    }
                                }
                            },
                            "weight": 91,
                        },
                        {
                            "destination": {"host": "s-route-0-destination-guid-1"},
                            "headers": {
                                "request": {
                                    "set": {
                                        "CF-App-Id": "app-guid-1",
                                        "CF-App-Process-Type": "process-type-1",
                                        "CF-Space-Id": "space-guid-0",
                                        "CF-Organization-Id": "org-guid-0",
                                    }
                                }
                            },
                            "weight": 9,
                        },
                    ],
                }
            ],
        },
    }

    # no path -> no match block
    second = result.virtual_services[1].to_manifest()
    assert "match" not in second["spec"]["http"][0]
    assert second["spec"]["http"][0]["route"][0]["headers"]["request"]["set"]["CF-Space-Id"] == "space-guid-1"


def test_infers_weights_with_remainder_on_first_destination():
    routes = [_route("r", destinations=[_dest("d0"), _dest("d1"), _dest("d2")])]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert _weights(vs.http[0]) == [34, 33, 33]


def test_infers_even_weights():
    routes = [_route("r", destinations=[_dest("d0"), _dest("d1")])]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert _weights(vs.http[0]) == [50, 50]


def test_single_unweighted_destination_gets_full_weight():
    routes = [_route("r", destinations=[_dest("d0")])]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert _weights(vs.http[0]) == [100]


def test_inferred_weights_always_sum_to_100():
    for n in range(1, 12):
        routes = [_route("r", destinations=[_dest(f"d{i}") for i in range(n)])]
        vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
        weights = _weights(vs.http[0])
        assert sum(weights) == 100
        assert weights[1:] == [100 // n] * (n - 1)


def test_explicit_weights_are_left_alone():
    routes = [_route("r", destinations=[_dest("d0", 70), _dest("d1", 20), _dest("d2", 10)])]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert _weights(vs.http[0]) == [70, 20, 10]


def test_weights_not_summing_to_100_drop_the_fqdn():
    routes = [
        _route("valid", path="/path0", destinations=[_dest("d0", 100)]),
        _route("invalid", host="invalid-route", path="/path0", destinations=[_dest("d1", 80), _dest("d2", 80)]),
    ]

    with capture_logs() as logs:
        result = VirtualServiceBuilder(GATEWAYS).build(routes)

    assert [vs.fqdn for vs in result.virtual_services] == ["test0.domain0.example.com"]
    assert len(result.virtual_services[0].http) == 1

    assert len(result.skipped) == 1
    skipped = result.skipped[0]
    assert skipped.fqdn == "invalid-route.domain0.example.com"
    assert skipped.reason == "weight_sum_invalid"
    assert skipped.route_guid == "invalid"
    assert "weights must sum up to 100" in skipped.message

    errors = [e for e in logs if e["log_level"] == "error"]
    assert errors and errors[0]["event"] == "virtual_service_skipped"
    assert errors[0]["fqdn"] == "invalid-route.domain0.example.com"


def test_out_of_range_weights_are_rejected_even_if_they_sum_to_100():
    routes = [_route("r", destinations=[_dest("d0", 150), _dest("d1", -50)])]
    result = VirtualServiceBuilder(GATEWAYS).build(routes)
    assert result.virtual_services == ()
    assert result.skipped[0].reason == "weight_sum_invalid"


def test_mixed_weight_presence_drops_the_fqdn():
    routes = [_route("r", destinations=[_dest("d0", 100), _dest("d1", None)])]
    result = VirtualServiceBuilder(GATEWAYS).build(routes)

    assert result.virtual_services == ()
    assert result.skipped[0].reason == "weight_presence_mismatch"
    assert "weights must be set on all or none" in result.skipped[0].message


def test_one_bad_route_drops_the_whole_fqdn_not_just_the_route():
    routes = [
        _route("good", path="/good", destinations=[_dest("d0")]),
        _route("bad", path="/bad", destinations=[_dest("d1", 10)]),
    ]
    result = VirtualServiceBuilder(GATEWAYS).build(routes)
    assert result.virtual_services == ()
    assert [s.fqdn for s in result.skipped] == ["test0.domain0.example.com"]


def test_internal_domain_uses_mesh_gateway():
    routes = [
        _route(
            "r",
            host="test1",
            domain="apps.internal",
            internal=True,
            destinations=[_dest("d0")],
        )
    ]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert vs.gateways == ("mesh",)


def test_mesh_gateway_is_configurable():
    config = CompilerConfig(istio_gateways=GATEWAYS, mesh_gateway="internal-mesh")
    routes = [_route("r", domain="apps.internal", internal=True, destinations=[_dest("d0")])]
    vs = VirtualServiceBuilder(config=config).build(routes).virtual_services[0]
    assert vs.gateways == ("internal-mesh",)


def test_external_gateway_order_is_preserved():
    routes = [_route("r", destinations=[_dest("d0")])]
    vs = VirtualServiceBuilder(["gw-z", "gw-a"]).build(routes).virtual_services[0]
    assert vs.gateways == ("gw-z", "gw-a")


def test_orders_paths_by_longest_matching_prefix():
    routes = [
        _route("r0", path="/path0", destinations=[_dest("d0", 91), _dest("d1", 9)]),
        _route("r1", path="/path0/deeper", destinations=[_dest("d2", 100)]),
    ]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]

    assert [h.match.prefix for h in vs.http] == ["/path0/deeper", "/path0"]
    assert _weights(vs.http[0]) == [100]
    assert _weights(vs.http[1]) == [91, 9]


def test_route_without_destinations_is_ignored_within_fqdn():
    routes = [
        _route("r0", path="/path0", destinations=[_dest("d0")]),
        _route("r1", path="/empty"),
    ]
    vs = VirtualServiceBuilder(GATEWAYS).build(routes).virtual_services[0]
    assert [h.match.prefix for h in vs.http] == ["/path0"]


def test_fqdn_without_any_destinations_yields_nothing():
    result = VirtualServiceBuilder(GATEWAYS).build([_route("r0", path="/x")])
    assert result.virtual_services == ()
    assert result.skipped == ()


def test_internal_and_external_routes_on_same_fqdn_drop_only_that_fqdn():
    routes = [
        _route("r0", path="/a", destinations=[_dest("d0")]),
        _route("r1", path="/b", internal=True, destinations=[_dest("d1")]),
        _route("other", host="other", destinations=[_dest("d2")]),
    ]
    result = VirtualServiceBuilder(GATEWAYS).build(routes)

    assert [vs.fqdn for vs in result.virtual_services] == ["other.domain0.example.com"]
    assert result.skipped[0].fqdn == "test0.domain0.example.com"
    assert result.skipped[0].reason == "domain_mismatch"
    assert "disagree on whether or not the domain is internal" in result.skipped[0].message


def test_routes_in_different_namespaces_drop_only_that_fqdn():
    routes = [
        _route("r0", path="/a", destinations=[_dest("d0")]),
        _route("r1", path="/b", namespace="some-different-namespace", destinations=[_dest("d1")]),
        _route("other", host="other", destinations=[_dest("d2")]),
    ]
    result = VirtualServiceBuilder(GATEWAYS).build(routes)

    assert [vs.fqdn for vs in result.virtual_services] == ["other.domain0.example.com"]
    assert result.skipped[0].reason == "namespace_mismatch"


def test_output_is_independent_of_input_order():
    routes = [
        _route("r0", path="/path0", destinations=[_dest("d0"), _dest("d1"), _dest("d2")]),
        _route("r1", path="/path0/deeper", destinations=[_dest("d3", 60), _dest("d4", 40)]),
        _route("r2", host="b", destinations=[_dest("d5")]),
        _route("r3", host="a", domain="apps.internal", internal=True, destinations=[_dest("d6")]),
    ]
    builder = VirtualServiceBuilder(GATEWAYS)

    forward = [vs.to_manifest() for vs in builder.build(routes).virtual_services]
    backward = [vs.to_manifest() for vs in builder.build(list(reversed(routes))).virtual_services]
    assert forward == backward
    assert [m["spec"]["hosts"][0] for m in forward] == [
        "a.apps.internal",
        "b.domain0.example.com",
        "test0.domain0.example.com",
    ]
