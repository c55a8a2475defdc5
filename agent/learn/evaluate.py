"""
agent/learn/evaluate.py
=======================
Compare signal policies over full episodes and score a saved model on
the validation set.  Both write a human-readable report next to the
generated artefacts.

Usage::

    python -m agent.learn.evaluate
"""

import os
from typing import Iterable, Optional, Union

import joblib
import pandas as pd

from agent.policies import Policy, make_policy
from junction.tuning import SimTuning
from junction.world import IntersectionWorld

# Columns averaged per policy in the comparison report.
_REPORT_COLUMNS = [
    "cumulative_reward",
    "completions",
    "accidents",
    "average_wait",
    "average_speed",
    "average_anger",
    "peak_anger",
    "early_stop",
]


def evaluate_policy(
    policy: Union[str, Policy],
    episodes: int = 3,
    tuning: Optional[SimTuning] = None,
    seed: Optional[int] = None,
    dt: float = 0.1,
) -> pd.DataFrame:
    """Run *policy* for *episodes* episodes; one row per episode summary."""
    if isinstance(policy, str):
        policy = make_policy(policy)
    name = getattr(policy, "name", type(policy).__name__)
    print(f"[Eval] Running '{name}' for {episodes} episodes …")

    world = IntersectionWorld(tuning=tuning, seed=seed, policy=policy, sim_id="eval-%s" % name)
    summaries = world.run_episodes(episodes, dt=dt)

    df = pd.DataFrame([s.as_dict() for s in summaries])
    df.insert(0, "policy", name)
    return df


def compare_policies(
    names: Iterable[str],
    episodes: int = 3,
    tuning: Optional[SimTuning] = None,
    seed: Optional[int] = None,
    dt: float = 0.1,
) -> pd.DataFrame:
    """Evaluate every named policy on the same seed and stack the rows."""
    frames = [evaluate_policy(name, episodes, tuning, seed, dt) for name in names]
    return pd.concat(frames, ignore_index=True)


def write_report(results: pd.DataFrame, output_file: str) -> pd.DataFrame:
    """Write per-policy means of *results* to *output_file*; return them."""
    means = results.groupby("policy", sort=False)[_REPORT_COLUMNS].mean()

    with open(output_file, "w", encoding="utf-8") as fh:
        fh.write("=" * 50 + "\n")
        fh.write("        SIGNAL POLICY EVALUATION REPORT\n")
        fh.write("=" * 50 + "\n\n")
        fh.write(f"Episodes per policy: {results.groupby('policy').size().max()}\n\n")
        for name, row in means.iterrows():
            fh.write(f"--- {name} ---\n")
            fh.write(f"  reward:      {row['cumulative_reward']:.3f}\n")
            fh.write(f"  completions: {row['completions']:.1f}\n")
            fh.write(f"  accidents:   {row['accidents']:.1f}\n")
            fh.write(f"  avg wait:    {row['average_wait']:.2f} s\n")
            fh.write(f"  avg speed:   {row['average_speed']:.2f} m/s\n")
            fh.write(f"  avg anger:   {row['average_anger']:.2f} (peak {row['peak_anger']:.2f})\n")
            fh.write(f"  early stops: {row['early_stop'] * 100:.0f}%\n\n")

    print(f"[Eval] Report saved to '{output_file}'.")
    return means


def score_saved_model(val_csv_path: str, model_path: str, output_file: str) -> Optional[float]:
    """Load the model, score it on validation data and write a report.

    Returns the validation accuracy, or ``None`` if the model is missing.
    """
    print(f"[Eval] Loading model from '{model_path}' …")
    try:
        model = joblib.load(model_path)
    except FileNotFoundError:
        print("Error: model not found; run agent.learn.train first.")
        return None

    df_val = pd.read_csv(val_csv_path)
    X_val = df_val.drop("label", axis=1).values
    y_val = df_val["label"].values

    accuracy = model.score(X_val, y_val)
    with open(output_file, "w", encoding="utf-8") as fh:
        fh.write("=" * 50 + "\n")
        fh.write("         SIGNAL MODEL VALIDATION REPORT\n")
        fh.write("=" * 50 + "\n\n")
        fh.write(f"Validation accuracy: {accuracy * 100:.2f}%\n\n")

        fh.write("--- Sample decisions (first 30) ---\n")
        predictions = model.predict(X_val[:30])
        for i, (true_label, predicted) in enumerate(zip(y_val[:30], predictions)):
            mark = "ok" if true_label == predicted else "MISS"
            fh.write(f"  decision {i + 1:2d}: expected {true_label}  model {predicted}  {mark}\n")

    print(f"[Eval] Validation accuracy: {accuracy * 100:.2f}%")
    return accuracy


if __name__ == "__main__":
    _agent_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    _generated = os.path.join(_agent_dir, "generated")
    os.makedirs(_generated, exist_ok=True)

    score_saved_model(
        os.path.join(_generated, "val_dataset.csv"),
        os.path.join(_generated, "signal_model.pkl"),
        os.path.join(_generated, "model_validation.txt"),
    )
    table = compare_policies(["hold", "cycle", "pressure", "random", "model"], episodes=3, seed=7)
    write_report(table, os.path.join(_generated, "evaluation_report.txt"))
