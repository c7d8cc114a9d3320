"""CLI dashboard — prints a scan result to the console."""

from scanner.engine import ScanResult


def print_opportunities(result: ScanResult) -> str:
    """Format and print the ranked opportunities of one cycle.

    Returns:
        The formatted string (also printed to stdout).
    """
    risk = result.market_risk
    macro = result.macro.btc_regime if result.macro else "N/A"

    lines = [
        "──────────────── Opportunity Scanner ────────────────",
        f"  Cycle:        {result.cycle_id}",
        f"  Finished:     {result.finished_at}",
        f"  Scanned:      {result.symbols_scanned} symbol(s)",
        f"  Market risk:  {risk.level} ({risk.risk_type})",
        f"  BTC regime:   {macro}",
        "─────────────────────────────────────────────────────",
    ]
    if not result.opportunities:
        lines.append("  No opportunities passed the filters.")
    for rank, opp in enumerate(result.opportunities, start=1):
        plan = opp.dca_plan
        flag = "  [R:R red flag]" if plan.rr_red_flag else ""
        lines.extend([
            f"  #{rank:<2} {opp.symbol:<12} {opp.side:<5} score {opp.confidence_score:5.1f}  "
            f"{opp.strategy} / tier {opp.tier}",
            f"      entries  {', '.join(f'{e.price:.6g}' for e in plan.entries)}  "
            f"(avg {plan.average_entry:.6g})",
            f"      stop     {opp.stop_loss:.6g} ({plan.stop_source})",
            f"      targets  {opp.take_profits.tp1:.6g} / {opp.take_profits.tp2:.6g} / "
            f"{opp.take_profits.tp3:.6g}  R:R {plan.risk_reward:.2f}{flag}",
        ])
    lines.append("─────────────────────────────────────────────────────")

    output = "\n".join(lines)
    print(output)
    return output
