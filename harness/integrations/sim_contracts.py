"""
Simulated Protocol Contracts
Python stand-ins for the token, venue and protocol contracts the harness drives.

Contracts:
- SimToken / SimLpToken          ERC20 and stable-swap LP token (swap())
- SimSwapRouter                   constant-product router, pairs keyed by factory
- SimStableSwap                   multi-token stable pool, single-sided adds
- SimRewardFarm                   MasterChef-style emissions per pool id
- SimPriceCalculator              largest pool + default-output price discovery
- SimController / SimBookkeeper / SimFeeRewardForwarder / SimContractReader
- SimVault                        share accounting + linear reward stream
- SimIronSwapStrategy             stakes the stable-pool LP in the farm

Economics are deliberately plain: the harness only observes them.
"""

from collections import namedtuple
from typing import List, Optional, Tuple

from infrastructure.ledger import Actor, ZERO_ADDRESS, address_of

from integrations.chain_simulator import ChainSimulator, SimContract, transaction

MAX_UINT = 2 ** 256 - 1
ACC_PRECISION = 10 ** 12
SWAP_FEE_NUMERATOR = 997
PRICE_DECIMALS = 18
MAX_PRICE_DEPTH = 3

VaultInfo = namedtuple("VaultInfo", ["name", "underlying", "strategy", "assets"])


# ============================================
# TOKENS
# ============================================

class SimToken(SimContract):
    NAME = "ERC20"

    async def construct(self, name: str, symbol: str, decimals: int, minter: Optional[str] = None):
        self.store.update({
            "name": name,
            "symbol": symbol,
            "decimals": decimals,
            "minter": minter or self.sender,
            "total_supply": 0,
            "balances": {},
            "allowances": {},
        })

    async def name(self) -> str:
        return self.store["name"]

    async def symbol(self) -> str:
        return self.store["symbol"]

    async def decimals(self) -> int:
        return self.store["decimals"]

    async def total_supply(self) -> int:
        return self.store["total_supply"]

    async def balance_of(self, holder) -> int:
        return self.store["balances"].get(address_of(holder), 0)

    async def allowance(self, owner, spender) -> int:
        return self.store["allowances"].get(address_of(owner), {}).get(address_of(spender), 0)

    @transaction
    async def approve(self, spender: str, amount: int) -> bool:
        self.require(amount >= 0, "ERC20: negative approval")
        self.store["allowances"].setdefault(self.sender, {})[spender] = amount
        return True

    @transaction
    async def transfer(self, to: str, amount: int) -> bool:
        self._move(self.sender, to, amount)
        return True

    @transaction
    async def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        allowed = self.store["allowances"].get(owner, {}).get(self.sender, 0)
        self.require(allowed >= amount, "ERC20: insufficient allowance")
        if allowed != MAX_UINT:
            self.store["allowances"].setdefault(owner, {})[self.sender] = allowed - amount
        self._move(owner, to, amount)
        return True

    @transaction
    async def mint(self, to: str, amount: int) -> bool:
        self.require(self.sender == self.store["minter"], "ERC20: caller is not the minter")
        self._mint(to, amount)
        return True

    @transaction
    async def set_minter(self, minter: str):
        self.require(self.sender == self.store["minter"], "ERC20: caller is not the minter")
        self.store["minter"] = minter

    def _move(self, owner: str, to: str, amount: int):
        self.require(amount >= 0, "ERC20: negative amount")
        balances = self.store["balances"]
        self.require(balances.get(owner, 0) >= amount, "ERC20: transfer amount exceeds balance")
        balances[owner] = balances.get(owner, 0) - amount
        balances[to] = balances.get(to, 0) + amount

    def _mint(self, to: str, amount: int):
        balances = self.store["balances"]
        balances[to] = balances.get(to, 0) + amount
        self.store["total_supply"] += amount


class SimLpToken(SimToken):
    NAME = "IronLpToken"

    async def construct(self, name: str, symbol: str, decimals: int, swap: str):
        await super().construct(name, symbol, decimals, swap)
        self.store["swap"] = swap

    async def swap(self) -> str:
        return self.store["swap"]


# ============================================
# VENUES
# ============================================

def _pair_key(token_a: str, token_b: str) -> str:
    return "|".join(sorted([token_a.lower(), token_b.lower()]))


def _amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    in_with_fee = amount_in * SWAP_FEE_NUMERATOR
    return in_with_fee * reserve_out // (reserve_in * 1000 + in_with_fee)


class SimSwapRouter(SimContract):
    NAME = "UniswapV2Router02"

    async def construct(self, factory: str):
        self.store.update({"factory": factory, "pairs": {}})

    async def factory(self) -> str:
        return self.store["factory"]

    def seed_pair(self, token_a: str, token_b: str, reserve_a: int, reserve_b: int):
        """Genesis helper: the caller mints the reserves to the router."""
        self.store["pairs"][_pair_key(token_a, token_b)] = {
            "address": self.chain.new_address("pair"),
            "reserves": {token_a: reserve_a, token_b: reserve_b},
        }

    def _pair(self, token_a: str, token_b: str) -> Optional[dict]:
        return self.store["pairs"].get(_pair_key(token_a, token_b))

    async def get_reserves(self, token_a, token_b) -> Tuple[int, int]:
        pair = self._pair(address_of(token_a), address_of(token_b))
        if pair is None:
            return (0, 0)
        return (pair["reserves"][address_of(token_a)], pair["reserves"][address_of(token_b)])

    async def pairs_for(self, token) -> List[Tuple[str, int, int]]:
        """(counterpart, reserve of token, reserve of counterpart) per pair."""
        token = address_of(token)
        result = []
        for pair in self.store["pairs"].values():
            reserves = pair["reserves"]
            if token not in reserves:
                continue
            counterpart = next(t for t in reserves if t != token)
            result.append((counterpart, reserves[token], reserves[counterpart]))
        return result

    def _amounts_out(self, amount_in: int, path: List[str]) -> List[int]:
        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            pair = self._pair(token_in, token_out)
            self.require(pair is not None, "UniswapV2Library: PAIR_MISSING")
            reserves = pair["reserves"]
            amounts.append(_amount_out(amounts[-1], reserves[token_in], reserves[token_out]))
        return amounts

    async def get_amounts_out(self, amount_in: int, path) -> List[int]:
        return self._amounts_out(amount_in, [address_of(t) for t in path])

    @transaction
    async def swap_exact_input(self, amount_in: int, amount_out_min: int, path: List[str],
                               to: str, deadline: int) -> List[int]:
        self.require(deadline >= self.now, "UniswapV2Router: EXPIRED")
        self.require(len(path) >= 2, "UniswapV2Router: INVALID_PATH")
        self.require(amount_in > 0, "UniswapV2Library: INSUFFICIENT_INPUT_AMOUNT")

        amounts = self._amounts_out(amount_in, path)
        self.require(amounts[-1] > 0, "UniswapV2Library: INSUFFICIENT_LIQUIDITY")
        self.require(amounts[-1] >= amount_out_min, "UniswapV2Router: INSUFFICIENT_OUTPUT_AMOUNT")

        await self.call(SimToken, path[0]).transfer_from(self.sender, self.address, amount_in)
        for i, (token_in, token_out) in enumerate(zip(path, path[1:])):
            reserves = self._pair(token_in, token_out)["reserves"]
            reserves[token_in] += amounts[i]
            reserves[token_out] -= amounts[i + 1]
        await self.call(SimToken, path[-1]).transfer(to, amounts[-1])
        return amounts


class SimStableSwap(SimContract):
    NAME = "IronSwap"

    async def construct(self, tokens: List[str], lp_name: str, lp_symbol: str):
        decimals = [await self.call(SimToken, t).decimals() for t in tokens]
        lp = await self.chain.deploy(SimLpToken, Actor(self.address), lp_name, lp_symbol, 18, self.address)
        self.store.update({
            "tokens": list(tokens),
            "decimals": decimals,
            "balances": [0] * len(tokens),
            "lp_token": lp.address,
        })

    async def get_token(self, index: int) -> str:
        return self.store["tokens"][index]

    async def get_tokens(self) -> List[str]:
        return list(self.store["tokens"])

    async def get_token_balance(self, index: int) -> int:
        return self.store["balances"][index]

    async def get_lp_token(self) -> str:
        return self.store["lp_token"]

    def _normalized(self, amounts: List[int]) -> int:
        return sum(a * 10 ** (18 - d) for a, d in zip(amounts, self.store["decimals"]))

    async def total_liquidity(self) -> int:
        return self._normalized(self.store["balances"])

    @transaction
    async def add_liquidity(self, amounts: List[int], min_to_mint: int, deadline: int) -> int:
        self.require(deadline >= self.now, "Deadline not met")
        self.require(len(amounts) == len(self.store["tokens"]), "Amounts must match pooled tokens")
        self.require(all(a >= 0 for a in amounts) and any(a > 0 for a in amounts), "Must supply liquidity")

        lp = self.call(SimLpToken, self.store["lp_token"])
        supply = await lp.total_supply()
        before = self._normalized(self.store["balances"])

        for i, amount in enumerate(amounts):
            if amount:
                await self.call(SimToken, self.store["tokens"][i]).transfer_from(self.sender, self.address, amount)
                self.store["balances"][i] += amount

        added = self._normalized(amounts)
        minted = added if supply == 0 else added * supply // before
        self.require(minted > 0, "Mint amount is zero")
        self.require(minted >= min_to_mint, "Couldn't mint min requested")

        await lp.mint(self.sender, minted)
        return minted


# ============================================
# REWARD FARM
# ============================================

class SimRewardFarm(SimContract):
    NAME = "IronChef"

    async def construct(self, reward_token: str):
        self.store.update({"owner": self.sender, "reward_token": reward_token, "pools": []})

    async def reward_token(self) -> str:
        return self.store["reward_token"]

    async def lp_token(self, pid: int) -> str:
        self.require(0 <= pid < len(self.store["pools"]), "Unknown pool id")
        return self.store["pools"][pid]["lp_token"]

    @transaction
    async def add_pool(self, lp_token: str, reward_per_second: int) -> int:
        self.require(self.sender == self.store["owner"], "Ownable: caller is not the owner")
        self.store["pools"].append({
            "lp_token": lp_token,
            "reward_per_second": reward_per_second,
            "acc_per_share": 0,
            "last_reward_time": self.now,
            "total_staked": 0,
            "users": {},
        })
        return len(self.store["pools"]) - 1

    def _acc_per_share(self, pool: dict) -> int:
        acc = pool["acc_per_share"]
        if self.now > pool["last_reward_time"] and pool["total_staked"] > 0:
            elapsed = self.now - pool["last_reward_time"]
            acc += elapsed * pool["reward_per_second"] * ACC_PRECISION // pool["total_staked"]
        return acc

    def _update_pool(self, pool: dict):
        pool["acc_per_share"] = self._acc_per_share(pool)
        pool["last_reward_time"] = self.now

    def _settle(self, pool: dict, holder: str) -> dict:
        user = pool["users"].setdefault(holder, {"amount": 0, "debt": 0, "accrued": 0})
        user["accrued"] += user["amount"] * pool["acc_per_share"] // ACC_PRECISION - user["debt"]
        return user

    async def pending_reward(self, pid: int, holder) -> int:
        pool = self.store["pools"][pid]
        user = pool["users"].get(address_of(holder))
        if user is None:
            return 0
        return user["accrued"] + user["amount"] * self._acc_per_share(pool) // ACC_PRECISION - user["debt"]

    async def user_info(self, pid: int, holder) -> Tuple[int, int]:
        user = self.store["pools"][pid]["users"].get(address_of(holder))
        if user is None:
            return (0, 0)
        return (user["amount"], user["accrued"])

    @transaction
    async def deposit(self, pid: int, amount: int):
        pool = self.store["pools"][pid]
        self._update_pool(pool)
        user = self._settle(pool, self.sender)
        if amount:
            await self.call(SimToken, pool["lp_token"]).transfer_from(self.sender, self.address, amount)
            user["amount"] += amount
            pool["total_staked"] += amount
        user["debt"] = user["amount"] * pool["acc_per_share"] // ACC_PRECISION

    @transaction
    async def withdraw(self, pid: int, amount: int):
        pool = self.store["pools"][pid]
        user = pool["users"].get(self.sender, {"amount": 0})
        self.require(user["amount"] >= amount, "withdraw: not good")
        self._update_pool(pool)
        user = self._settle(pool, self.sender)
        user["amount"] -= amount
        pool["total_staked"] -= amount
        user["debt"] = user["amount"] * pool["acc_per_share"] // ACC_PRECISION
        if amount:
            await self.call(SimToken, pool["lp_token"]).transfer(self.sender, amount)

    @transaction
    async def harvest(self, pid: int) -> int:
        pool = self.store["pools"][pid]
        self._update_pool(pool)
        user = self._settle(pool, self.sender)
        reward = user["accrued"]
        user["accrued"] = 0
        user["debt"] = user["amount"] * pool["acc_per_share"] // ACC_PRECISION
        if reward:
            await self.call(SimToken, self.store["reward_token"]).mint(self.sender, reward)
        return reward


# ============================================
# PRICE DISCOVERY
# ============================================

class SimPriceCalculator(SimContract):
    NAME = "PriceCalculator"

    async def construct(self, controller: str, default_token: str, factories: List[str], routers: List[str]):
        self.store.update({
            "controller": controller,
            "default_token": default_token,
            "factories": list(factories),
            "routers": list(routers),
        })

    async def default_token(self) -> str:
        return self.store["default_token"]

    async def swap_factories(self, index: int) -> str:
        return self.store["factories"][index]

    async def _largest(self, token: str, excluded: List[str], skip_tokens: List[str]):
        best = (ZERO_ADDRESS, 0, 0, 0)
        for index, (factory, router) in enumerate(zip(self.store["factories"], self.store["routers"])):
            if factory in excluded:
                continue
            for counterpart, reserve_token, reserve_counterpart in await self.call(SimSwapRouter, router).pairs_for(token):
                if counterpart == token or counterpart in skip_tokens:
                    continue
                if reserve_token > best[2]:
                    best = (counterpart, index, reserve_token, reserve_counterpart)
        return best

    async def get_largest_pool(self, token, excluded_factories) -> Tuple[str, int, int]:
        """(counterpart token, factory index, token-side reserve)"""
        counterpart, index, reserve, _ = await self._largest(
            address_of(token), [address_of(f) for f in excluded_factories], []
        )
        return (counterpart, index, reserve)

    async def _price(self, token: str, visited: List[str]) -> int:
        if token == self.store["default_token"]:
            return 10 ** PRICE_DECIMALS
        if len(visited) >= MAX_PRICE_DEPTH:
            return 0

        counterpart, _, reserve_token, reserve_counterpart = await self._largest(token, [], visited + [token])
        if counterpart == ZERO_ADDRESS or reserve_token == 0:
            return 0

        counterpart_price = await self._price(counterpart, visited + [token])
        token_decimals = await self.call(SimToken, token).decimals()
        counterpart_decimals = await self.call(SimToken, counterpart).decimals()
        return (
            counterpart_price * reserve_counterpart * 10 ** token_decimals
            // (reserve_token * 10 ** counterpart_decimals)
        )

    async def get_price_with_default_output(self, token) -> int:
        return await self._price(address_of(token), [])


# ============================================
# PROTOCOL CORE
# ============================================

class SimController(SimContract):
    NAME = "Controller"

    async def construct(self, reward_delay: int, profit_share_numerator: int):
        self.store.update({
            "governance": self.sender,
            "reward_delay": reward_delay,
            "profit_share_numerator": profit_share_numerator,
            "fee_reward_forwarder": None,
            "bookkeeper": None,
            "reward_token": None,
            "vaults": {},
        })

    async def governance(self) -> str:
        return self.store["governance"]

    async def reward_delay(self) -> int:
        return self.store["reward_delay"]

    async def profit_share_numerator(self) -> int:
        return self.store["profit_share_numerator"]

    async def fee_reward_forwarder(self) -> Optional[str]:
        return self.store["fee_reward_forwarder"]

    async def bookkeeper(self) -> Optional[str]:
        return self.store["bookkeeper"]

    async def reward_token(self) -> Optional[str]:
        return self.store["reward_token"]

    async def is_valid_vault(self, vault) -> bool:
        return address_of(vault) in self.store["vaults"]

    async def strategy_of(self, vault) -> Optional[str]:
        return self.store["vaults"].get(address_of(vault))

    def _only_governance(self):
        self.require(self.sender == self.store["governance"], "Not governance")

    @transaction
    async def set_fee_reward_forwarder(self, forwarder: str):
        self._only_governance()
        self.store["fee_reward_forwarder"] = forwarder

    @transaction
    async def set_bookkeeper(self, bookkeeper: str):
        self._only_governance()
        self.store["bookkeeper"] = bookkeeper

    @transaction
    async def set_reward_token(self, token: str):
        self._only_governance()
        self.store["reward_token"] = token

    @transaction
    async def add_vault_and_strategy(self, vault: str, strategy: str):
        self._only_governance()
        self.require(vault not in self.store["vaults"], "Vault already registered")
        await self.call(SimVault, vault).set_strategy(strategy)
        if self.store["bookkeeper"]:
            await self.call(SimBookkeeper, self.store["bookkeeper"]).add_vault(vault)
        self.store["vaults"][vault] = strategy


class SimBookkeeper(SimContract):
    NAME = "Bookkeeper"

    async def construct(self, controller: str):
        self.store.update({"controller": controller, "vaults": []})

    async def vaults(self) -> List[str]:
        return list(self.store["vaults"])

    @transaction
    async def add_vault(self, vault: str):
        self.require(self.sender == self.store["controller"], "Not controller")
        if vault not in self.store["vaults"]:
            self.store["vaults"].append(vault)


class SimFeeRewardForwarder(SimContract):
    NAME = "FeeRewardForwarder"

    async def construct(self, controller: str):
        self.store.update({"controller": controller, "routes": {}})

    async def conversion_path(self, token_from, token_to) -> Tuple[List[str], List[str]]:
        route = self.store["routes"].get(f"{address_of(token_from)}>{address_of(token_to)}")
        if route is None:
            return ([], [])
        return (list(route["path"]), list(route["routers"]))

    @transaction
    async def set_conversion_path(self, path: List[str], routers: List[str]):
        governance = await self.call(SimController, self.store["controller"]).governance()
        self.require(self.sender == governance, "Not governance")
        self.require(len(path) >= 2, "FRF: path too short")
        self.require(len(path) == len(routers) + 1, "FRF: Wrong data")
        self.store["routes"][f"{path[0]}>{path[-1]}"] = {"path": list(path), "routers": list(routers)}

    @transaction
    async def liquidate(self, token_in: str, token_out: str, amount: int) -> int:
        route = self.store["routes"].get(f"{token_in}>{token_out}")
        self.require(route is not None, "FRF: No conversion path")

        await self.call(SimToken, token_in).transfer_from(self.sender, self.address, amount)
        for hop_in, hop_out, router in zip(route["path"], route["path"][1:], route["routers"]):
            await self.call(SimToken, hop_in).approve(router, amount)
            amounts = await self.call(SimSwapRouter, router).swap_exact_input(
                amount, 0, [hop_in, hop_out], self.address, self.now
            )
            amount = amounts[-1]
        await self.call(SimToken, token_out).transfer(self.sender, amount)
        return amount


class SimContractReader(SimContract):
    NAME = "ContractReader"

    async def vault_info(self, vault) -> VaultInfo:
        vault_ref = self.call(SimVault, address_of(vault))
        strategy = await vault_ref.strategy()
        assets = await self.chain.at(strategy).assets() if strategy else []
        return VaultInfo(
            name=await vault_ref.name(),
            underlying=await vault_ref.underlying(),
            strategy=strategy,
            assets=assets,
        )


# ============================================
# VAULT
# ============================================

class SimVault(SimContract):
    NAME = "SmartVault"

    async def construct(self, name: str, controller: str, underlying: str, reward_delay: int):
        self.require(reward_delay > 0, "Zero reward duration")
        self.store.update({
            "name": name,
            "controller": controller,
            "underlying": underlying,
            "strategy": None,
            "total_supply": 0,
            "shares": {},
            "reward_token": None,
            "reward_delay": reward_delay,
            "reward_rate": 0,
            "period_finish": 0,
            "last_update": self.now,
            "released": 0,
        })

    async def name(self) -> str:
        return self.store["name"]

    async def underlying(self) -> str:
        return self.store["underlying"]

    async def strategy(self) -> Optional[str]:
        return self.store["strategy"]

    async def reward_token(self) -> Optional[str]:
        return self.store["reward_token"]

    async def total_supply(self) -> int:
        return self.store["total_supply"]

    async def balance_of(self, holder) -> int:
        return self.store["shares"].get(address_of(holder), 0)

    def _underlying(self) -> SimToken:
        return self.call(SimToken, self.store["underlying"])

    def _strategy(self) -> "SimIronSwapStrategy":
        return self.chain.at(self.store["strategy"], sender=self.address)

    async def underlying_balance_in_vault(self) -> int:
        return await self._underlying().balance_of(self.address)

    async def underlying_balance_with_investment(self) -> int:
        invested = 0
        if self.store["strategy"]:
            invested = await self._strategy().invested_underlying_balance()
        return await self.underlying_balance_in_vault() + invested

    async def get_price_per_full_share(self) -> int:
        supply = self.store["total_supply"]
        if supply == 0:
            return 10 ** 18
        return await self.underlying_balance_with_investment() * 10 ** 18 // supply

    def _released_until(self, moment: int) -> int:
        end = min(moment, self.store["period_finish"])
        released = self.store["released"]
        if end > self.store["last_update"]:
            released += (end - self.store["last_update"]) * self.store["reward_rate"]
        return released

    async def released_rewards(self) -> int:
        return self._released_until(self.now)

    async def earned(self, holder) -> int:
        supply = self.store["total_supply"]
        if supply == 0:
            return 0
        return self._released_until(self.now) * await self.balance_of(holder) // supply

    @transaction
    async def set_strategy(self, strategy: str):
        self.require(self.sender == self.store["controller"], "Not controller")
        strategy_underlying = await self.chain.at(strategy).underlying()
        self.require(strategy_underlying == self.store["underlying"], "Wrong underlying")
        self.store["strategy"] = strategy

    async def _invest(self):
        strategy = self._strategy()
        if await strategy.paused():
            return
        idle = await self.underlying_balance_in_vault()
        if idle:
            await self._underlying().transfer(strategy.address, idle)
            await strategy.invest_all()

    @transaction
    async def deposit(self, amount: int):
        self.require(amount > 0, "Zero amount")
        self.require(self.store["strategy"] is not None, "Strategy not set")

        total_before = await self.underlying_balance_with_investment()
        supply = self.store["total_supply"]
        shares = amount if supply == 0 or total_before == 0 else amount * supply // total_before
        self.require(shares > 0, "Zero shares")

        await self._underlying().transfer_from(self.sender, self.address, amount)
        self.store["shares"][self.sender] = self.store["shares"].get(self.sender, 0) + shares
        self.store["total_supply"] += shares
        await self._invest()

    @transaction
    async def withdraw(self, shares: int) -> int:
        balance = self.store["shares"].get(self.sender, 0)
        self.require(0 < shares <= balance, "Not enough shares")

        value = shares * await self.underlying_balance_with_investment() // self.store["total_supply"]
        self.store["shares"][self.sender] = balance - shares
        self.store["total_supply"] -= shares

        idle = await self.underlying_balance_in_vault()
        if idle < value:
            await self._strategy().withdraw_to_vault(value - idle)
            idle = await self.underlying_balance_in_vault()
        self.require(idle >= value, "Not enough liquidity")

        await self._underlying().transfer(self.sender, value)
        return value

    @transaction
    async def withdraw_all(self) -> int:
        return await self.withdraw(self.store["shares"].get(self.sender, 0))

    @transaction
    async def notify_reward(self, token: str, amount: int):
        self.require(self.sender == self.store["strategy"], "Not strategy")
        self.require(amount > 0, "Zero reward")
        if self.store["reward_token"] is None:
            self.store["reward_token"] = token
        self.require(token == self.store["reward_token"], "Unknown reward token")

        await self.call(SimToken, token).transfer_from(self.sender, self.address, amount)

        self.store["released"] = self._released_until(self.now)
        remaining = 0
        if self.now < self.store["period_finish"]:
            remaining = (self.store["period_finish"] - self.now) * self.store["reward_rate"]
        delay = self.store["reward_delay"]
        self.store["reward_rate"] = (amount + remaining) // delay
        self.store["period_finish"] = self.now + delay
        self.store["last_update"] = self.now


# ============================================
# STRATEGY
# ============================================

class SimIronSwapStrategy(SimContract):
    NAME = "StrategyIronSwap"
    FARM_NAME = "IronChef"

    async def construct(self, controller: str, vault: str, underlying: str, tokens: List[str], pool_id: int):
        vault_underlying = await self.call(SimVault, vault).underlying()
        self.require(vault_underlying == underlying, "Wrong underlying")
        farm = self.chain.named(self.FARM_NAME)
        farm_lp = await self.call(SimRewardFarm, farm).lp_token(pool_id)
        self.require(farm_lp == underlying, "Pool id does not stake the underlying")

        self.store.update({
            "controller": controller,
            "vault": vault,
            "underlying": underlying,
            "assets": list(tokens),
            "pool_id": pool_id,
            "farm": farm,
            "reward_token": await self.call(SimRewardFarm, farm).reward_token(),
            "paused": False,
        })

    async def controller(self) -> str:
        return self.store["controller"]

    async def vault(self) -> str:
        return self.store["vault"]

    async def underlying(self) -> str:
        return self.store["underlying"]

    async def assets(self) -> List[str]:
        return list(self.store["assets"])

    async def pool_id(self) -> int:
        return self.store["pool_id"]

    async def platform(self) -> str:
        return "IRON"

    async def paused(self) -> bool:
        return self.store["paused"]

    async def reward_tokens(self) -> List[str]:
        return [self.store["reward_token"]]

    def _farm(self) -> SimRewardFarm:
        return self.call(SimRewardFarm, self.store["farm"])

    def _underlying(self) -> SimToken:
        return self.call(SimToken, self.store["underlying"])

    async def _staked(self) -> int:
        amount, _ = await self._farm().user_info(self.store["pool_id"], self.address)
        return amount

    async def invested_underlying_balance(self) -> int:
        return await self._staked() + await self._underlying().balance_of(self.address)

    async def ready_to_claim(self) -> int:
        """Farm rewards not yet delivered to vault investors."""
        pending = await self._farm().pending_reward(self.store["pool_id"], self.address)
        streamed = await self.call(SimToken, self.store["reward_token"]).balance_of(self.store["vault"])
        return pending + streamed

    async def _governance(self) -> str:
        return await self.call(SimController, self.store["controller"]).governance()

    async def _only_vault_or_governance(self):
        allowed = self.sender == self.store["vault"] or self.sender == await self._governance()
        self.require(allowed, "Not vault or governance")

    @transaction
    async def invest_all(self):
        await self._only_vault_or_governance()
        self.require(not self.store["paused"], "Strategy is paused")
        balance = await self._underlying().balance_of(self.address)
        if balance:
            await self._underlying().approve(self.store["farm"], balance)
            await self._farm().deposit(self.store["pool_id"], balance)

    @transaction
    async def withdraw_to_vault(self, amount: int):
        self.require(self.sender == self.store["vault"], "Not vault")
        own = await self._underlying().balance_of(self.address)
        if own < amount:
            staked = await self._staked()
            await self._farm().withdraw(self.store["pool_id"], min(amount - own, staked))
        balance = await self._underlying().balance_of(self.address)
        await self._underlying().transfer(self.store["vault"], min(amount, balance))

    @transaction
    async def harvest(self):
        await self._only_vault_or_governance()
        self.require(not self.store["paused"], "Strategy is paused")

        await self._farm().harvest(self.store["pool_id"])
        reward = self.call(SimToken, self.store["reward_token"])
        amount = await reward.balance_of(self.address)
        if amount:
            await reward.approve(self.store["vault"], amount)
            await self.call(SimVault, self.store["vault"]).notify_reward(reward.address, amount)

    @transaction
    async def emergency_exit(self):
        self.require(self.sender == await self._governance(), "Not governance")
        staked = await self._staked()
        if staked:
            await self._farm().withdraw(self.store["pool_id"], staked)
        balance = await self._underlying().balance_of(self.address)
        if balance:
            await self._underlying().transfer(self.store["vault"], balance)
        self.store["paused"] = True


# ============================================
# REGISTRY
# ============================================

def register_sim_contracts(chain: ChainSimulator):
    """Make every simulated contract deployable/connectable by name."""
    chain.register_contract_type(SimToken, "IERC20", "RewardToken")
    chain.register_contract_type(SimLpToken, "IIronLpToken")
    chain.register_contract_type(SimSwapRouter, "IUniswapV2Router02")
    chain.register_contract_type(SimStableSwap, "IIronSwap")
    chain.register_contract_type(SimRewardFarm, "IIronChef")
    chain.register_contract_type(SimPriceCalculator, "IPriceCalculator")
    chain.register_contract_type(SimController, "IController")
    chain.register_contract_type(SimBookkeeper, "IBookkeeper")
    chain.register_contract_type(SimFeeRewardForwarder, "IFeeRewardForwarder")
    chain.register_contract_type(SimContractReader)
    chain.register_contract_type(SimVault, "ISmartVault")
    chain.register_contract_type(SimIronSwapStrategy, "IStrategy")
