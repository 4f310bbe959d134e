"""Flight search and admin flight management routes."""

from flask import Blueprint, jsonify, request

from ...models.flight import (
    AircraftCreateModel,
    FlightCreateModel,
    FlightSearchModel,
    FlightUpdateModel,
)
from ..auth import require_admin
from ..extension import get_services

flights_bp = Blueprint('flights', __name__)


def _dump(model):
    return model.model_dump(mode='json', by_alias=True)


@flights_bp.route('/flights')
def search_flights():
    """
    Search bookable flights.

    Query params: origin, destination (substring, case-insensitive) and
    date (YYYY-MM-DD).
    """
    filters = FlightSearchModel.model_validate(request.args.to_dict())
    flights = get_services().catalog.search(filters.origin, filters.destination, filters.date)
    return jsonify([_dump(f) for f in flights])


@flights_bp.route('/flights/<int:flight_id>')
def get_flight(flight_id):
    return jsonify(_dump(get_services().catalog.get_flight(flight_id)))


@flights_bp.route('/flights', methods=['POST'])
@require_admin
def create_flight():
    payload = FlightCreateModel.model_validate(request.get_json(silent=True) or {})
    flight = get_services().catalog.create_flight(payload)
    return jsonify(_dump(flight)), 201


@flights_bp.route('/flights/<int:flight_id>', methods=['PUT'])
@require_admin
def update_flight(flight_id):
    payload = FlightUpdateModel.model_validate(request.get_json(silent=True) or {})
    flight = get_services().catalog.update_flight(flight_id, payload)
    return jsonify(_dump(flight))


@flights_bp.route('/flights/<int:flight_id>', methods=['DELETE'])
@require_admin
def delete_flight(flight_id):
    deleted = get_services().catalog.delete_flight(flight_id)
    message = 'Flight deleted' if deleted else 'Flight cancelled; booking history kept'
    return jsonify({'success': True, 'deleted': deleted, 'message': message})


@flights_bp.route('/aircraft')
def list_aircraft():
    return jsonify([_dump(a) for a in get_services().catalog.list_aircraft()])


@flights_bp.route('/aircraft', methods=['POST'])
@require_admin
def create_aircraft():
    payload = AircraftCreateModel.model_validate(request.get_json(silent=True) or {})
    return jsonify(_dump(get_services().catalog.create_aircraft(payload))), 201
