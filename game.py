# game.py
# Space Math 🚀: shoot (or type) the right answer before you run out of lives.
# Run with: streamlit run game.py

import logging
import os
from dataclasses import replace

import streamlit as st
from PIL import Image, ImageDraw, ImageFont

from spacemath.events import (
    ANSWER_CORRECT,
    ANSWER_INCORRECT,
    ANSWER_SUBMIT,
    PROBLEM_NEW,
    SESSION_END,
    SESSION_PAUSE,
    SESSION_QUIT,
    SESSION_RESUME,
    SESSION_START,
    TARGET_HIT,
    TARGET_MISSED,
    AnswerSubmitPayload,
    EventChannel,
    SessionStartPayload,
    TargetPayload,
)
from spacemath.evolution import progress_within_stage, stage_info, xp_to_next_stage
from spacemath.problems import DIFFICULTY_CONFIGS
from spacemath.profiles import ProfileStore, apply_session_summary
from spacemath.session import GameMode, GameSession, Phase, SessionSettings

logging.basicConfig(level=os.environ.get("SPACEMATH_LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger("spacemath.app")

# ---------- Page Setup ----------
st.set_page_config(page_title="Space Math 🚀", page_icon="🚀", layout="centered")

DATA_DIR = os.environ.get("SPACEMATH_DATA_DIR", ".spacemath")

MODES = {
    "Shoot (pick the answer)": {"mode": GameMode.SHOOT, "desc": "Four ships fly in. Shoot the one carrying the right answer."},
    "Type (enter the answer)": {"mode": GameMode.TYPE, "desc": "One ship carries the equation. Type the answer to blast it."},
}

# A page rerun is one "frame": there is nothing to animate, so the next problem comes straight away.
PAGE_SETTINGS = replace(SessionSettings(), next_problem_delay_ms=0, missed_target_delay_ms=0, first_problem_delay_ms=0)

FEED_LENGTH = 8


# ---------- Helpers ----------
def init_state():
    defaults = {
        "session": None,
        "profile": None,
        "feed": [],
        "evolution": None,
        "saved": False,
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


@st.cache_resource
def get_store():
    return ProfileStore(DATA_DIR)


def emoji_hearts(n, total=PAGE_SETTINGS.starting_lives):
    return "❤️" * n + "🤍" * max(0, total - n)


def push_feed(line):
    st.session_state.feed = (st.session_state.feed + [line])[-FEED_LENGTH:]


def render_stage_badge(stage: int, xp: int) -> Image.Image:
    """Draw the ship card: stage name and progress towards the next stage."""
    evo = stage_info(stage)
    img = Image.new("RGB", (640, 170), (15, 23, 42))
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()
    draw.rectangle([(8, 8), (631, 161)], outline=(96, 165, 250), width=3)
    draw.text((30, 28), f"STAGE {evo.ordinal}", fill=(251, 191, 36), font=font)
    draw.text((30, 56), evo.name.upper(), fill=(226, 232, 240), font=font)
    pct = progress_within_stage(xp, stage)
    draw.rectangle([(30, 100), (610, 124)], outline=(148, 163, 184), width=2)
    draw.rectangle([(32, 102), (32 + int(576 * pct / 100), 122)], fill=(56, 189, 248))
    remaining = xp_to_next_stage(xp, stage)
    caption = f"{xp} XP  -  {remaining} XP to next stage" if remaining else f"{xp} XP  -  fully evolved"
    draw.text((30, 136), caption, fill=(148, 163, 184), font=font)
    return img


# ---------- Event handlers ----------
def on_correct(payload):
    push_feed(f"✅ Correct! +{payload.xp_delta} XP  •  Streak {payload.streak} 🔥")


def on_incorrect(_):
    push_feed("❌ Ouch, that was not it.")


def on_problem(payload):
    logger.debug("showing %s", payload.equation_text)


def on_end(summary):
    profile = st.session_state.profile
    if profile is None or st.session_state.saved:
        return
    change = apply_session_summary(profile, summary)
    get_store().save_profile(profile)
    st.session_state.saved = True
    st.session_state.evolution = change


def start_game(mode_key, difficulty):
    channel = EventChannel()
    profile = st.session_state.profile
    stage = profile.progress.evolution_stage if profile else 1
    session = GameSession(channel, MODES[mode_key]["mode"], difficulty, stage, settings=PAGE_SETTINGS).attach()
    channel.subscribe(ANSWER_CORRECT, on_correct)
    channel.subscribe(ANSWER_INCORRECT, on_incorrect)
    channel.subscribe(PROBLEM_NEW, on_problem)
    channel.subscribe(SESSION_END, on_end)

    if profile is not None:
        profile.settings.difficulty = difficulty
        profile.settings.game_mode = MODES[mode_key]["mode"].value
        get_store().save_profile(profile)

    st.session_state.session = session
    st.session_state.feed = []
    st.session_state.saved = False
    st.session_state.evolution = None
    channel.publish(SESSION_START, SessionStartPayload(MODES[mode_key]["mode"].value, difficulty))


def publish(event, payload=None):
    st.session_state.session.channel.publish(event, payload)


# ---------- UI ----------
init_state()
store = get_store()

st.title("🚀 Space Math")
st.caption("Blast the right answers, keep your streak alive, and evolve your ship!")

with st.sidebar:
    st.header("👩‍🚀 Pilot")
    profiles = store.list_profiles()
    if profiles:
        active = store.active_profile()
        ids = [p.id for p in profiles]
        idx = ids.index(active.id) if active is not None and active.id in ids else 0
        chosen = st.selectbox("Profile", profiles, index=idx, format_func=lambda p: f"{p.avatar} {p.name}")
        if st.session_state.profile is None or st.session_state.profile.id != chosen.id:
            store.set_active_profile(chosen.id)
            st.session_state.profile = chosen
    with st.form("new_profile", clear_on_submit=True):
        new_name = st.text_input("New pilot name", placeholder="e.g., Malo")
        if st.form_submit_button("➕ Create") and new_name.strip():
            st.session_state.profile = store.create_profile(new_name.strip())
            store.set_active_profile(st.session_state.profile.id)
            st.rerun()

    st.header("⚙️ Game Setup")
    profile = st.session_state.profile
    default_level = profile.settings.difficulty if profile else 1
    level = st.select_slider("Difficulty", options=[c.level for c in DIFFICULTY_CONFIGS], value=default_level,
                             help="Higher levels add operations and bigger numbers.")
    ops = ", ".join(op.symbol for op in DIFFICULTY_CONFIGS[level - 1].operations)
    st.caption(f"Operations: {ops}")
    mode_keys = list(MODES.keys())
    default_mode = 1 if profile and profile.settings.game_mode == GameMode.TYPE.value else 0
    mode_key = st.selectbox("Mode", mode_keys, index=default_mode)
    st.info(MODES[mode_key]["desc"])
    c1, c2 = st.columns(2)
    with c1:
        if st.button("▶️ Start", use_container_width=True):
            start_game(mode_key, level)
    with c2:
        if st.button("⏹️ Quit", use_container_width=True) and st.session_state.session is not None:
            publish(SESSION_QUIT)

    if profile is not None:
        st.divider()
        st.image(render_stage_badge(profile.progress.evolution_stage, profile.progress.xp),
                 use_container_width=True)

session = st.session_state.session
if session is not None:
    session.tick()
state = session.state if session is not None else None

# HUD
if state is not None and not state.quit:
    hud1, hud2, hud3, hud4 = st.columns(4)
    with hud1:
        st.metric("Score", state.score)
    with hud2:
        st.metric("Streak", f"{state.streak} 🔥" if state.streak >= 3 else state.streak)
    with hud3:
        st.metric("Lives", emoji_hearts(state.lives_remaining))
    with hud4:
        st.metric("XP", state.xp_earned)

st.divider()

if state is None or state.quit:
    st.subheader("How to play")
    st.markdown(
        """
- Create or pick a **pilot** on the left, then choose a **Difficulty** and **Mode**.
- Press **Start** to launch.
- **Shoot**: click the ship with the right answer. Wrong ships cost a life.
- **Type**: type the answer and hit **Fire**.
- Letting the right answer fly past also costs a life. You have 5 ❤️.
- Fast answers (under 3 s) and long streaks earn bonus XP, and XP evolves your ship!
        """
    )
elif state.phase is Phase.ENDED:
    st.subheader("💥 Game over")
    e1, e2, e3, e4 = st.columns(4)
    with e1: st.metric("Score", state.score)
    with e2: st.metric("Correct", state.correct_count)
    with e3: st.metric("XP earned", state.xp_earned)
    with e4: st.metric("Best Streak", state.best_streak)
    change = st.session_state.evolution
    if change is not None:
        st.balloons()
        old, new = stage_info(change.from_stage), stage_info(change.to_stage)
        st.success(f"✨ Evolution! {old.glyph} {old.name} → {new.glyph} {new.name}")
        prof = st.session_state.profile
        st.image(render_stage_badge(new.ordinal, prof.progress.xp), use_container_width=True)
else:
    problem = state.current_problem
    paused = state.phase is Phase.PAUSED
    st.write("**Mothership broadcast:**")
    st.markdown(f"### {problem.equation_text if problem else '…'}")

    p1, p2 = st.columns(2)
    with p1:
        if not paused and st.button("⏸️ Pause"):
            publish(SESSION_PAUSE)
            st.rerun()
        if paused and st.button("▶️ Resume"):
            publish(SESSION_RESUME)
            st.rerun()
    with p2:
        if not paused and problem is not None and st.button("🌠 Let it pass"):
            # decoys first: once the real answer is gone the next problem is already up
            for target in sorted(state.targets, key=lambda t: t.is_correct):
                publish(TARGET_MISSED, TargetPayload(target.value))
            st.rerun()

    if paused:
        st.info("Paused. The clock is stopped.")
    elif problem is not None and state.mode is GameMode.SHOOT:
        cols = st.columns(max(1, len(state.targets)))
        for i, (col, target) in enumerate(zip(cols, state.targets)):
            with col:
                if st.button(f"🛸 {target.value}", key=f"target_{state.attempts}_{i}", use_container_width=True):
                    publish(TARGET_HIT, TargetPayload(target.value))
                    st.rerun()
    elif problem is not None:
        with st.form("answer_form", clear_on_submit=True):
            user_input = st.text_input("Your answer", value="", placeholder="e.g., 42")
            submitted = st.form_submit_button("Fire 🔫")
        if submitted:
            publish(ANSWER_SUBMIT, AnswerSubmitPayload(user_input))
            st.rerun()

if st.session_state.feed:
    st.write("### Recent")
    for line in st.session_state.feed[::-1]:
        st.markdown(f"- {line}")

st.divider()
st.caption("Tip: answer within 3 seconds for a time bonus, and keep a streak going for even more XP.")
