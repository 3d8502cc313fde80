# tests/test_network_builder.py
"""
Test network construction.

Verifies routes, shared vehicles, container nesting and config validation.
"""

import json

import pytest

from coldchain.errors import ConfigError, OfficeNotFoundError, RouteNotFoundError
from simulation.config import load_network_config, parse_network_config
from simulation.network import ContainerKind, RouteType, build_network


class TestNetworkBuilder:
    """Tests for routes and containers built per carrier."""

    def test_route_numbers_follow_office_order(self, network):
        """Hub gets a ground route; each spoke gets two air routes and a ground route."""
        sls = {n: r for n, r in network.routes.items() if n.startswith("SLS")}
        assert sorted(sls) == ["SLS001", "SLS002", "SLS003", "SLS004"]

        assert sls["SLS001"].route_type == RouteType.GROUND
        assert sls["SLS001"].from_office.iata == "DEN"
        assert sls["SLS002"].route_type == RouteType.AIR
        assert (sls["SLS002"].from_office.iata, sls["SLS002"].to_office.iata) == ("PHX", "DEN")
        assert (sls["SLS003"].from_office.iata, sls["SLS003"].to_office.iata) == ("DEN", "PHX")
        assert sls["SLS004"].route_type == RouteType.GROUND
        assert sls["SLS004"].from_office.iata == "PHX"

    def test_schedules(self, network):
        phx = network.carriers["SLS"].offices["PHX"]
        den = network.hubs["SLS"]
        to_hub = network.air_route(phx, den)
        from_hub = network.air_route(den, phx)
        ground = network.ground_route(phx)

        assert to_hub.scheduled_depart == "16:00"
        assert from_hub.scheduled_depart == "00:00"
        assert (ground.scheduled_depart, ground.scheduled_arrival) == ("08:00", "15:00")

    def test_round_trip_shares_vehicle(self, network):
        phx = network.carriers["SLS"].offices["PHX"]
        den = network.hubs["SLS"]
        assert network.air_route(phx, den).vehicle_uid == network.air_route(den, phx).vehicle_uid

    def test_air_vehicle_nests_uld_and_freezer(self, network):
        route = network.route("SLS002")
        vehicle = network.vehicle_of(route)
        assert vehicle.uid == "SLS002000"
        assert vehicle.kind == ContainerKind.VEHICLE
        assert len(vehicle.children) == len(network.thresholds)

        for uld_uid in vehicle.children:
            uld = network.containers[uld_uid]
            assert uld.kind == ContainerKind.ULD
            (freezer_uid,) = uld.children
            freezer = network.containers[freezer_uid]
            assert freezer.kind == ContainerKind.FREEZER
            assert freezer.product in network.thresholds

    def test_ground_vehicle_holds_freezers(self, network):
        vehicle = network.vehicle_of(network.route("SLS001"))
        kinds = {network.containers[uid].kind for uid in vehicle.children}
        assert kinds == {ContainerKind.FREEZER}
        products = {network.containers[uid].product for uid in vehicle.children}
        assert products == set(network.thresholds)

    def test_thresholds_carry_units(self, network):
        assert network.thresholds["PfizerVaccine"].unit == "C"
        assert network.thresholds["DryIce"].unit == "kg"

    def test_office_state_from_description(self, network):
        assert network.carriers["NLS"].offices["JFK"].state == "NY"
        assert network.office_by_state("IL").iata == "ORD"

    def test_unknown_state(self, network):
        with pytest.raises(OfficeNotFoundError):
            network.office_by_state("TX")

    def test_unknown_route(self, network):
        with pytest.raises(RouteNotFoundError):
            network.route("XXX001")

    def test_is_monitored(self, network):
        assert network.is_monitored("P", "PfizerVaccine")
        assert not network.is_monitored("P", "Aspirin")
        assert not network.is_monitored("D", "DryIce")
        assert not network.is_monitored("P", None)

    def test_compliance_user_falls_back_to_monitoring_user(self, network_data):
        network_data["carriers"]["SLS"]["complianceUser"] = ""
        network = build_network(parse_network_config(network_data))
        assert network.compliance_user("SLS") == "monitor-user"
        assert network.compliance_user("NLS") == "nls-user"

    def test_unsigned_offset_is_normalized(self, network_data):
        network_data["carriers"]["NLS"]["offices"]["JFK"]["gmtOffset"] = "05:00"
        network = build_network(parse_network_config(network_data))
        assert network.carriers["NLS"].offices["JFK"].gmt_offset == "+05:00"


class TestHubValidation:
    """Each carrier needs exactly one hub."""

    def test_no_hub(self, network_data):
        network_data["carriers"]["SLS"]["offices"]["DEN"]["hub"] = False
        with pytest.raises(ConfigError):
            build_network(parse_network_config(network_data))

    def test_two_hubs(self, network_data):
        network_data["carriers"]["NLS"]["offices"]["JFK"]["hub"] = True
        with pytest.raises(ConfigError):
            build_network(parse_network_config(network_data))


class TestNetworkConfig:
    """Tests for network definition parsing."""

    def test_aliases(self, network_config):
        assert network_config.carriers["SLS"].compliance_user == "sls-user"
        assert network_config.carriers["SLS"].offices["DEN"].gmt_offset == "-07:00"
        assert network_config.products["PfizerVaccine"].handling_cd == "P"
        assert network_config.monitoring.violation_rate == 1.0

    def test_event_paths_default(self, network_config):
        paths = network_config.monitoring.event_paths()
        assert paths["delivery"] == "deliver"
        assert paths["transferAck"] == "transferAck"

    def test_invalid_violation_rate(self, network_data):
        network_data["monitoring"]["violationRate"] = 1.5
        with pytest.raises(ConfigError):
            parse_network_config(network_data)

    def test_missing_threshold_bounds(self, network_data):
        del network_data["products"]["PfizerVaccine"]["minValue"]
        with pytest.raises(ConfigError):
            parse_network_config(network_data)

    def test_inverted_threshold_band(self, network_data):
        network_data["products"]["PfizerVaccine"].update({"minValue": -60, "maxValue": -80})
        with pytest.raises(ConfigError) as exc_info:
            parse_network_config(network_data)
        assert "maxValue" in str(exc_info.value)

    def test_single_value_band(self, network_data):
        network_data["products"]["PfizerVaccine"].update({"minValue": -70, "maxValue": -70})
        config = parse_network_config(network_data)
        assert config.products["PfizerVaccine"].min_value == -70

    def test_invalid_json(self):
        with pytest.raises(ConfigError):
            parse_network_config("{not json")

    def test_load_from_file(self, tmp_path, network_data):
        path = tmp_path / "network.json"
        path.write_text(json.dumps(network_data))
        config = load_network_config(path)
        assert set(config.carriers) == {"SLS", "NLS"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_network_config(tmp_path / "missing.json")
