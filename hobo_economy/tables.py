"""
Event table data for the income actions.

Each entry is (weight, value_rule, message). Weights are relative: the
tables lean heavily towards small gains, with rare windfalls and rare
losses so the loop stays rewarding without losing its bite.
"""

import random
from enum import Enum
from typing import Dict, Optional

from hobo_economy.events import (
    EventTable,
    build_table,
    cents_between,
    dollars_between,
    either,
    fixed,
    signed,
)


class ActionKind(Enum):
    """Player-initiated income actions, each with its own table and cooldown."""
    BEG = "beg"
    WORK = "work"
    HUSTLE = "hustle"


# Low risk, low reward streetwork
BEG_EVENTS = (
    (40, cents_between(0.10, 1.00), "A passer-by drops {amount} into your tin can."),
    (20, fixed(0.0), "You rattle your cup, but everyone just hurries past... no cash this time."),
    (8, cents_between(-0.05, -0.50), "A pick-pocket nicks {amount} from your change!"),
    (8, fixed(2.0), "A busking guitarist takes pity and hands you {amount} from their hat."),
    (8, fixed(5.0), "Lucky find! A crumpled {amount} bill was lying near the curb!"),
    (4, fixed(-1.0), "Uh-oh! The police fine you {amount} for loitering."),
    (1, fixed(-10.0), "You fumble your coins and watch {amount} disappear down a storm drain!"),
    (1, fixed(20.0), "Jackpot! You spot an unattended wallet stuffed with {amount}!"),
    (10, cents_between(0.01, 0.10), "A curious child giggles and drops {amount} into your cup."),
    (3, cents_between(5.00, 15.00), "A generous tourist slips you {amount} after chatting about the city."),
    (4, cents_between(-0.10, -0.75), "You jostle your cup, spilling {amount} onto the sidewalk!"),
    (5, fixed(0.0), "A kindly grandmother offers you warm cookies. No money, but they smell amazing."),
    (6, fixed(1.0), "A street magician finishes his set and flicks you {amount} with a flourish."),
    (7, fixed(-0.05), "A taxi hits a puddle, drenching you. In the commotion you drop {amount}."),
    (4, fixed(0.25), "A friendly barista hands you a day-old muffin and {amount} in change."),
    (3, fixed(0.0), "A street preacher offers a pamphlet but no money. You nod politely."),
    (1, cents_between(1.00, 25.00), "You find a discarded scratch-off ticket. It still pays out {amount}!"),
    (2, fixed(-2.0), "A stray dog snatches the hot-dog you just bought! {amount} gone."),
    (4, cents_between(1.00, 3.00), "You cash in bottles and cans for {amount} at the depot."),
    (4, fixed(0.0), "A mall security guard chases you away. Nothing earned."),
    (2, fixed(5.0), "You help unload boxes for a local charity and earn {amount}."),
    (1, fixed(10.0), "A drunk banker stumbles by and drops {amount} into your hand."),
    (2, either(-1.0, 1.0), signed(
        "Heads! A group of gamblers flick you {amount}.",
        "Tails! You lose {amount} in a quick bet.",
    )),
    (5, fixed(2.0), "A tourist pays {amount} so you'll pose for a quirky photo."),
    (3, fixed(-2.5), "You need a ride across town and spend {amount} on bus fare."),
    (9, fixed(0.25), "You spot a shiny quarter on the pavement. {amount} richer!"),
    (1, fixed(-1.0), "A seagull swoops down and steals a crumpled {amount} bill!"),
    (1, fixed(15.0), "An old friend recognizes you and presses {amount} into your hand."),
    (3, fixed(0.0), "A vendor gives you bruised fruit. Tasty, but no money."),
    (1, fixed(30.0), "You donate plasma and collect {amount}."),
    (12, fixed(-0.01), "A single penny slips through a grate. Every cent counts! You lose {amount}."),
    (2, fixed(0.0), "Volunteers give you a meal voucher. No cash exchanged."),
    (4, fixed(-0.5), "A street artist sketches your portrait; you tip {amount}."),
    (1, fixed(8.0), "Lucky roll! You win {amount} in a sidewalk dice game."),
    (1, fixed(-3.0), "Snake-eyes... you lose {amount} gambling."),
    (6, fixed(0.5), "A food-truck vendor hands you {amount} with a free sample."),
    (2, fixed(0.25), "A remorseful cop drops {amount} after nearly bumping you."),
    (2, fixed(-0.1), "A mischievous kid grabs your cardboard sign; in the scuffle you lose {amount}."),
    (3, fixed(0.75), "A grateful cabbie rounds up the fare he asked you to watch, giving {amount}."),
    (1, fixed(25.0), "A local reporter pays {amount} to interview you about life on the street."),
    (5, cents_between(0.50, 2.00), "You fish {amount} in coins from a public fountain."),
    (6, fixed(1.0), "A street-team rep hands you a promo {amount} bill."),
    (2, fixed(-2.0), "You splurge on a lottery ticket... and immediately regret the {amount} loss."),
    (5, cents_between(0.60, 1.80), "Bottle return nets you {amount}."),
    (4, fixed(-0.3), "A vendor short-changes you by {amount}. Too late to argue."),
    (2, fixed(3.0), "You return a lost wallet; the owner rewards you with {amount}."),
    (4, cents_between(-0.15, -0.60), "A bike courier whizzes past, knocking over your cup. {amount} in coins scatter."),
    (4, cents_between(0.50, 2.00), "A rowdy bar crowd showers you with {amount} in loose change."),
    (3, fixed(5.0), "A street-festival vendor hands you a {amount} food-stall gift card."),
    (4, fixed(0.0), "You find another scratch-off. Alas, it's a dud. No money today."),
    (1, fixed(1000.0), "A famous philanthropist walks by and gives you {amount} for no reason."),
)

# Moderate general labour
WORK_EVENTS = (
    (19, dollars_between(10, 99), "A man in a van picks you up for day labour. He gives you {amount} for a few hours of work."),
    (8, dollars_between(20, 60), "You spend the morning hauling drywall at a building site and pocket {amount}."),
    (6, dollars_between(15, 40), "A restaurant needs a dishwasher for the lunch rush. You earn {amount}."),
    (5, dollars_between(25, 80), "You help a family move house. They pay you {amount} and throw in a sandwich."),
    (4, dollars_between(10, 30), "You hand out flyers downtown all afternoon for {amount}."),
    (3, dollars_between(50, 150), "A landscaper is short-staffed and pays you {amount} for a full day."),
    (2, fixed(0.0), "You wait by the hardware store all day but nobody hires you. No cash this time."),
    (1, fixed(0.0), "Nobody seems to want to hire a bum like you. No cash this time."),
    (2, dollars_between(-25, -5), "You buy work boots for a job that falls through. That cost you {amount}."),
    (1, dollars_between(-40, -15), "The foreman docks your pay for a broken shovel. You lose {amount}."),
    (1, dollars_between(200, 400), "A film crew needs an extra who looks exactly like you. You earn {amount}!"),
)

# Higher variance risky favour
HUSTLE_EVENTS = (
    (9, dollars_between(50, 99), "A kind client pays you a handsome tip of {amount}!"),
    (4, dollars_between(100, 250), "A big spender in a suit pays you {amount} and asks no questions."),
    (3, fixed(0.0), "The night drags on without a single taker. No cash this time."),
    (2, fixed(-20.0), "Trouble strikes as the law catches up with you. You lose {amount} in fines."),
    (1, dollars_between(-150, -60), "A client stiffs you and your wallet goes missing too. You lose {amount}."),
    (1, dollars_between(500, 1000), "A lonely millionaire takes a shine to you and leaves {amount} on the nightstand!"),
)

EVENT_DATA = {
    ActionKind.BEG: (BEG_EVENTS, "Nothing happens... the streets are quiet."),
    ActionKind.WORK: (WORK_EVENTS, "Nothing happens... the job board is empty."),
    ActionKind.HUSTLE: (HUSTLE_EVENTS, "Nothing happens... the night is uneventful."),
}


def build_event_tables(rng: Optional[random.Random] = None) -> Dict[ActionKind, EventTable]:
    """
    Build one table per action kind.

    Args:
        rng: Random source for every table (defaults to the OS-entropy source)

    Returns:
        dict: {ActionKind: EventTable}
    """
    return {
        kind: build_table(kind.value, entries, rng=rng, fallback_message=fallback)
        for kind, (entries, fallback) in EVENT_DATA.items()
    }
