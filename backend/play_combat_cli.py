#!/usr/bin/env python3
"""
回合制战斗 - 命令行驱动

用 rich 控制台充当表现层、骰子UI和玩家选择界面，完整跑一场战斗。

使用方式:
    cd backend
    python play_combat_cli.py [enemy_id]
    python play_combat_cli.py bog_witch --auto
"""
import asyncio
import logging
import sys
from pathlib import Path
from typing import List

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).parent))

from rich.box import ROUNDED, SIMPLE
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from taleforge.combat import (
    CombatChannel,
    CombatDataRepository,
    CombatEvent,
    CombatEventType,
    CombatNarrator,
    CombatOrchestrator,
    DecisionProvider,
    PlayerChoice,
    TurnError,
    TurnOutcome,
)
from taleforge.combat.dice import perform_roll, probabilities
from taleforge.combat.models import AbilityOption, Combatant, RollRequest, RollResult, TargetingMode
from taleforge.config import validate_config
from taleforge.services import LLMService
from taleforge.state import GameState


# ==================== 配置 ====================

DEFAULT_ENEMY = "bog_witch"

# 颜色主题
COLORS = {
    "narration": "bright_yellow",
    "enemy": "bold red",
    "player": "bright_green",
    "heal": "green",
    "system": "bright_magenta",
    "error": "bright_red",
    "hint": "dim",
}


# ==================== 表现层 ====================

class CombatRenderer:
    """事件渲染 + 立即确认动画（文本界面没有动画）"""

    def __init__(self, console: Console, channel: CombatChannel):
        self.console = console
        self.channel = channel

    def __call__(self, event: CombatEvent) -> None:
        handler = getattr(self, f"_on_{event.type.value}", None)
        if handler:
            handler(event)

        if event.type == CombatEventType.ACTION_EXECUTED:
            self.channel.acknowledge_animation(event.actor_id)
        elif event.type == CombatEventType.VICTORY:
            self.channel.acknowledge_victory()

    def _on_narration(self, event: CombatEvent) -> None:
        self.console.print(Panel(
            event.payload.get("text", ""),
            title=event.payload.get("speaker", ""),
            border_style=COLORS["narration"],
        ))

    def _on_damage_taken(self, event: CombatEvent) -> None:
        self.console.print(f"[{COLORS['enemy']}]💥 {event.actor_id} -{event.payload.get('amount', 0)}[/]")

    def _on_heal_received(self, event: CombatEvent) -> None:
        self.console.print(f"[{COLORS['heal']}]✚ {event.actor_id} +{event.payload.get('amount', 0)}[/]")

    def _on_combatant_defeated(self, event: CombatEvent) -> None:
        self.console.print(f"[{COLORS['system']}]☠ {event.actor_id} is down![/]")

    def _on_victory(self, event: CombatEvent) -> None:
        self.console.print(Panel("VICTORY!", border_style="bold green"))

    def _on_combat_ended(self, event: CombatEvent) -> None:
        self.console.print(f"[{COLORS['system']}]战斗结束: {event.payload.get('result')}[/]")

    def _on_error(self, event: CombatEvent) -> None:
        self.console.print(f"[{COLORS['error']}]错误: {event.payload.get('message')}[/]")


# ==================== 玩家输入 ====================

class ConsolePlayer:
    """技能选择 + 掷骰（回车掷骰）"""

    def __init__(self, console: Console, game_state: GameState):
        self.console = console
        self.game_state = game_state

    async def choose_ability(self, character: Combatant, options: List[AbilityOption]) -> PlayerChoice:
        table = Table(title=f"{character.name} ({character.current_health}/{character.max_health})", box=SIMPLE)
        table.add_column("#", style="cyan")
        table.add_column("技能")
        table.add_column("效果")
        table.add_column("次数")

        usable = [option for option in options if option.available]
        for index, option in enumerate(usable, 1):
            ability = option.ability
            effect = f"{ability.damage} dmg" if ability.damage else (ability.effect.type.value if ability.effect else "")
            uses = "∞" if option.uses_remaining is None else str(option.uses_remaining)
            table.add_row(str(index), ability.name, effect, uses)
        self.console.print(table)

        choices = [str(i) for i in range(1, len(usable) + 1)]
        picked = usable[int(Prompt.ask("选择技能", choices=choices, default="1")) - 1].ability

        target_id = None
        if picked.targeting == TargetingMode.ALLY:
            allies = [member.id for member in self.game_state.active_party()]
            target_id = Prompt.ask("选择队友", choices=allies, default=character.id)
        return PlayerChoice(ability_id=picked.id, target_id=target_id)

    async def request_roll(self, request: RollRequest) -> RollResult:
        chances = probabilities(request.stat_bonus, request.difficulty)
        self.console.print(f"[{COLORS['hint']}]{request.ability_name} ({request.difficulty.value}): {chances}[/]")
        Prompt.ask("按回车掷骰", default="")
        result = perform_roll(request.stat_bonus, request.difficulty)
        self.console.print(f"[{COLORS['player']}]🎲 {result.to_display_text()}[/]")
        return result


# ==================== 入口 ====================

def print_summary(console: Console, orchestrator: CombatOrchestrator) -> None:
    summary = orchestrator.summary()
    table = Table(title=f"Round {summary.get('round')} - {summary.get('result') or summary.get('phase')}", box=ROUNDED)
    table.add_column("单位")
    table.add_column("生命")
    table.add_column("状态")
    enemy = summary["enemy"]
    table.add_row(enemy["name"], enemy["health"], enemy["status"], style=COLORS["enemy"])
    for member in summary["party"]:
        table.add_row(member["name"], member["health"], member["status"])
    console.print(table)


async def main():
    """主入口"""
    import argparse

    parser = argparse.ArgumentParser(description="回合制战斗 - 命令行驱动")
    parser.add_argument("enemy_id", nargs="?", default=DEFAULT_ENEMY, help="敌人ID")
    parser.add_argument("--auto", action="store_true", help="队员自动选择技能并自动掷骰")
    parser.add_argument("--debug", action="store_true", help="显示调试日志")
    args = parser.parse_args()

    console = Console()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    collaborator = LLMService() if validate_config() else None
    provider = DecisionProvider(collaborator=collaborator)
    game_state = GameState.from_repository(CombatDataRepository())
    channel = CombatChannel()
    channel.sink = CombatRenderer(console, channel)
    player = None if args.auto else ConsolePlayer(console, game_state)

    orchestrator = CombatOrchestrator(
        game_state,
        decision_provider=provider,
        narrator=CombatNarrator(provider),
        channel=channel,
        player_input=player,
        dice=player,
    )

    outcome = await orchestrator.play(args.enemy_id)
    while outcome == TurnOutcome.FAILED:
        error: TurnError = orchestrator.last_error
        if not Confirm.ask(f"[{COLORS['error']}]{error.message} 重试?[/]", default=True):
            break
        outcome = await error.retry()

    print_summary(console, orchestrator)


if __name__ == "__main__":
    asyncio.run(main())
