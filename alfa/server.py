#!/usr/bin/env python3
"""
ALFA Protocol Server - REST API for the game frontend

Endpoints:
  GET  /health                      - Liveness check
  GET  /api/status                  - Block, time, addresses, sale/redeem window
  GET  /api/types/<collection>      - Key or lootbox types with drop tables
  GET  /api/store/prices            - Lootbox prices per allowed asset
  GET  /api/forge/prices            - Upgrade prices per allowed asset
  GET  /api/vault/tokens            - Vault balances and per-key redeem amounts
  GET  /api/vault/share/<holder>    - Holder's Vault share
  GET  /api/referral/<account>      - Parent, children and payout chain
  GET  /api/keys/<holder>           - Holder's keys
  GET  /api/lootboxes/<holder>      - Holder's lootboxes
  POST /api/store/buy               - Buy lootboxes
  POST /api/forge/upgrade           - Upgrade a key
  POST /api/lootbox/open            - Open a lootbox
  POST /api/vault/redeem            - Redeem a master key
  POST /api/faucet                  - Devnet: credit native coin or tokens
"""

import argparse
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ProtocolError
from .game_types import NATIVE, to_address
from .ledger import Ledger
from .protocol import Protocol, deploy_protocol
from .typed_asset import TypedAsset

log = logging.getLogger(__name__)


class BadRequest(ValueError):
    """Malformed request body or parameter."""


def _body() -> dict:
    data = request.get_json(silent=True)
    if not data:
        raise BadRequest("No data provided")
    return data


def _field(data: dict, name: str, kind=str, default=None):
    value = data.get(name, default)
    if value is None:
        raise BadRequest(f"Missing field: {name}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid {name}: {value!r}")


def _address(value: str) -> str:
    try:
        return to_address(value)
    except ValueError as e:
        raise BadRequest(str(e))


def _holdings(collection: TypedAsset, holder: str) -> dict:
    holder = _address(holder)
    return {
        'holder': holder,
        'amounts': {str(t.type_id): n for t, n in zip(collection.get_types(),
                                                     collection.get_holder_amounts(holder))},
        'tokens': [
            {'token_id': token_id, 'type_id': collection.token_type(token_id)}
            for token_id in collection.get_holder_tokens(holder)
        ],
    }


def create_app(protocol: Protocol) -> Flask:
    """Build the Flask app around a deployed protocol."""
    app = Flask(__name__)
    CORS(app)  # Allow cross-origin for the game frontend

    ledger = protocol.ledger

    # =========================================================================
    # ERRORS
    # =========================================================================

    @app.errorhandler(ProtocolError)
    def protocol_error(e: ProtocolError):
        log.info(f"Rejected {request.method} {request.path}: {e}")
        return jsonify(e.to_dict()), 400

    @app.errorhandler(BadRequest)
    def bad_request(e: BadRequest):
        return jsonify({'error': 'bad_request', 'message': str(e)}), 400

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        log.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({'error': 'internal_error', 'message': str(e)}), 500

    # =========================================================================
    # STATUS
    # =========================================================================

    @app.route('/health')
    def health():
        return jsonify({'ok': True, 'timestamp': ledger.timestamp})

    @app.route('/api/status')
    def api_status():
        vault = protocol.vault
        return jsonify({
            'status': 'ok',
            'block': ledger.block_number,
            'timestamp': ledger.timestamp,
            'contracts': protocol.addresses(),
            'sale_open': vault.is_sale_open(),
            'redeem_open': vault.is_redeem_open(),
            'unlock_date': vault.unlock_date,
            'redeem_until': vault.redeem_until,
        })

    @app.route('/api/types/<collection>')
    def api_types(collection: str):
        collections = {'keys': protocol.key, 'lootboxes': protocol.lootbox}
        if collection not in collections:
            return jsonify({'error': 'not_found', 'message': f'Unknown collection {collection}'}), 404
        types = collections[collection].get_types()
        return jsonify({'types': [t.to_dict() for t in types], 'count': len(types)})

    # =========================================================================
    # PRICES / VAULT
    # =========================================================================

    @app.route('/api/store/prices')
    def api_store_prices():
        prices = protocol.store.get_prices()
        return jsonify({'prices': [[p.to_dict() for p in entries] for entries in prices]})

    @app.route('/api/forge/prices')
    def api_forge_prices():
        prices = protocol.forge.get_prices()
        return jsonify({'prices': [[p.to_dict() for p in entries] for entries in prices]})

    @app.route('/api/vault/tokens')
    def api_vault_tokens():
        vault = protocol.vault
        return jsonify({
            'tokens': [t.to_dict() for t in vault.get_vault_tokens()],
            'redeem_amounts': [t.to_dict() for t in vault.get_redeem_amounts()],
            'total_shares': vault.get_total_shares(),
        })

    @app.route('/api/vault/share/<holder>')
    def api_vault_share(holder: str):
        holder = _address(holder)
        return jsonify({
            'holder': holder,
            'share': protocol.vault.get_holder_share(holder),
            'total_shares': protocol.vault.get_total_shares(),
        })

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    @app.route('/api/referral/<account>')
    def api_referral(account: str):
        referral = protocol.referral
        account = _address(account)
        return jsonify({
            'account': account,
            'parent': referral.get_parent(account),
            'children': referral.get_children(account),
            'chain': [entry.to_dict() for entry in referral.get_referral_percents(account)],
        })

    @app.route('/api/keys/<holder>')
    def api_keys(holder: str):
        return jsonify(_holdings(protocol.key, holder))

    @app.route('/api/lootboxes/<holder>')
    def api_lootboxes(holder: str):
        return jsonify(_holdings(protocol.lootbox, holder))

    # =========================================================================
    # ACTIONS
    # =========================================================================

    @app.route('/api/store/buy', methods=['POST'])
    def api_store_buy():
        """
        Buy lootboxes.

        Request:
        {
            "sender": "0x...",
            "type_id": 1,
            "token": "0x...",           # Optional, native coin if omitted
            "count": 1,                 # Optional, default 1
            "referral_parents": [],     # Optional, nearest parent first
            "value": 0                  # Native coin attached
        }
        """
        data = _body()
        token_ids = protocol.store.buy(
            _address(_field(data, 'sender')),
            _field(data, 'type_id', int),
            _address(_field(data, 'token', default=NATIVE)),
            _field(data, 'count', int, default=1),
            [_address(a) for a in data.get('referral_parents') or []],
            _field(data, 'value', int, default=0),
        )
        return jsonify({'token_ids': token_ids, 'block': ledger.block_number})

    @app.route('/api/forge/upgrade', methods=['POST'])
    def api_forge_upgrade():
        data = _body()
        new_token_id = protocol.forge.upgrade(
            _address(_field(data, 'sender')),
            _field(data, 'token_id', int),
            _address(_field(data, 'token', default=NATIVE)),
            _field(data, 'value', int, default=0),
            [_address(a) for a in data.get('referral_parents') or []],
        )
        return jsonify({
            'upgraded': new_token_id is not None,
            'new_token_id': new_token_id,
            'block': ledger.block_number,
        })

    @app.route('/api/lootbox/open', methods=['POST'])
    def api_lootbox_open():
        data = _body()
        key_id = protocol.lootbox.open(_address(_field(data, 'sender')), _field(data, 'token_id', int))
        return jsonify({'key_id': key_id, 'block': ledger.block_number})

    @app.route('/api/vault/redeem', methods=['POST'])
    def api_vault_redeem():
        data = _body()
        amounts = protocol.vault.redeem(_address(_field(data, 'sender')), _field(data, 'token_id', int))
        return jsonify({'amounts': [a.to_dict() for a in amounts], 'block': ledger.block_number})

    @app.route('/api/faucet', methods=['POST'])
    def api_faucet():
        data = _body()
        account = _address(_field(data, 'account'))
        token = _address(_field(data, 'token', default=NATIVE))
        amount = _field(data, 'amount', int)
        if token == NATIVE:
            ledger.mint_native(account, amount)
        else:
            ledger.token(token).mint(account, amount)
        log.info(f"Faucet: {amount} of {token} to {account}")
        return jsonify({'account': account, 'token': token, 'balance': ledger.balance_of(token, account)})

    return app


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description="ALFA protocol API server")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default from ALFA_HTTP_PORT or 8080)")
    parser.add_argument("--rpc-url", default=None, help="BSC RPC URL for live router quotes")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()

    config = Config.from_env()
    if args.port is not None:
        config.http_port = args.port
    if args.rpc_url is not None:
        config.rpc_url = args.rpc_url
    if args.log_level is not None:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    ledger = Ledger(timestamp=config.start_time or None)
    protocol = deploy_protocol(config, ledger=ledger)

    log.info(f"Starting ALFA API on port {config.http_port}")
    log.info(f"Router: {config.router if config.rpc_url else 'devnet static rates'}")
    log.info(f"Sale open: {protocol.vault.is_sale_open()} (unlock {config.unlock_date})")

    app = create_app(protocol)
    app.run(host='0.0.0.0', port=config.http_port, debug=False)


if __name__ == '__main__':
    main()
