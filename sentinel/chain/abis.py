"""Minimal ABI fragments for the contracts the sentinel reads and writes."""

from __future__ import annotations

from typing import Any

WAD = 10**18


def _fn(
    name: str,
    inputs: list[tuple[str, str]] | None = None,
    outputs: list[tuple[str, str]] | None = None,
    *,
    view: bool = True,
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view" if view else "nonpayable",
        "inputs": [{"name": n, "type": t} for n, t in inputs or []],
        "outputs": [{"name": n, "type": t} for n, t in outputs or []],
    }


def _event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": n, "type": t, "indexed": indexed} for n, t, indexed in inputs
        ],
    }


_ASSET_DATA_COMPONENTS = [
    {"name": "configuration", "type": "uint256"},
    {"name": "liquidityIndex", "type": "uint128"},
    {"name": "currentLiquidityRate", "type": "uint128"},
    {"name": "variableBorrowIndex", "type": "uint128"},
    {"name": "currentVariableBorrowRate", "type": "uint128"},
    {"name": "lastUpdateTimestamp", "type": "uint40"},
    {"name": "id", "type": "uint16"},
    {"name": "supplyTokenAddress", "type": "address"},
    {"name": "borrowTokenAddress", "type": "address"},
]

POOL_ABI: list[dict[str, Any]] = [
    _fn("paused", outputs=[("", "bool")]),
    _fn("pause", view=False),
    _fn("getAssetsList", outputs=[("", "address[]")]),
    {
        "type": "function",
        "name": "getAssetData",
        "stateMutability": "view",
        "inputs": [{"name": "asset", "type": "address"}],
        "outputs": [
            {"name": "", "type": "tuple", "components": _ASSET_DATA_COMPONENTS},
        ],
    },
    _fn(
        "getUserAccountData",
        inputs=[("user", "address")],
        outputs=[
            ("totalCollateralUSD", "uint256"),
            ("totalDebtUSD", "uint256"),
            ("availableBorrowsUSD", "uint256"),
            ("currentLiquidationThreshold", "uint256"),
            ("ltv", "uint256"),
            ("healthFactor", "uint256"),
        ],
    ),
    _event("Paused", [("account", "address", False)]),
    _event("Unpaused", [("account", "address", False)]),
    _event(
        "LiquidationCall",
        [
            ("collateralAsset", "address", True),
            ("debtAsset", "address", True),
            ("user", "address", True),
            ("debtToCover", "uint256", False),
            ("liquidatedCollateralAmount", "uint256", False),
            ("liquidator", "address", False),
            ("receiveSupplyToken", "bool", False),
        ],
    ),
]

ORACLE_ABI: list[dict[str, Any]] = [
    _fn("getAssetPrice", inputs=[("asset", "address")], outputs=[("", "uint256")]),
]

PRICE_ORACLE_ABI: list[dict[str, Any]] = [
    _fn("updatePrice", inputs=[("_newPrice", "uint256")], view=False),
    _fn("currentPrice", outputs=[("", "uint256")]),
]

STAKING_ABI: list[dict[str, Any]] = [
    _fn(
        "getStakingInfo",
        outputs=[
            ("availableForStaking", "uint256"),
            ("currentlyStaked", "uint256"),
            ("totalRewards", "uint256"),
            ("numNodes", "uint256"),
        ],
    ),
]

ERC20_ABI: list[dict[str, Any]] = [
    _fn("totalSupply", outputs=[("", "uint256")]),
]
