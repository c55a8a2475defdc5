"""
agent/learn/train.py
====================
Train the Random Forest signal policy on an imitation dataset.

Usage::

    python -m agent.learn.train
"""

import os

import joblib
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.model_selection import train_test_split

from junction.lights import build_configuration_table, describe


class PolicyModelTrainer:
    """Trains a Random Forest to predict the configuration index."""

    def __init__(self) -> None:
        self.model = RandomForestClassifier(
            n_estimators=50,
            max_depth=12,
            random_state=42,
            n_jobs=-1,
            class_weight="balanced",
        )

    def train(self, train_csv_path: str, model_save_path: str) -> dict:
        """Load CSV, train, evaluate and serialise the model.

        Parameters
        ----------
        train_csv_path : str
            Path to the training CSV (with a ``label`` column).
        model_save_path : str
            Where to write the ``.pkl`` model file.

        Returns
        -------
        dict
            ``{rows, features, train_accuracy, test_accuracy}``.
        """
        print(f"[Train] Loading data from '{os.path.basename(train_csv_path)}' …")
        df_train = pd.read_csv(train_csv_path)
        if df_train.empty:
            raise ValueError("training set %s has no rows" % train_csv_path)

        table = build_configuration_table()
        for label, count in df_train["label"].value_counts().sort_index().items():
            name = describe(table[label]) if 0 <= label < len(table) else "?"
            print(f"[Train] config {label} ({name}): {count}")

        X = df_train.drop("label", axis=1).values
        y = df_train["label"].values

        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=0.1, random_state=42,
        )

        print(f"[Train] Training on {X.shape[1]} features …")
        self.model.fit(X_train, y_train)

        acc_train = self.model.score(X_train, y_train)
        acc_test = self.model.score(X_test, y_test)

        print("\n--- Performance Report ---")
        print(f"  Train accuracy: {acc_train * 100:.2f}%")
        print(f"  Test  accuracy: {acc_test * 100:.2f}%\n")

        folder = os.path.dirname(model_save_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        joblib.dump(self.model, model_save_path)
        print(f"[Train] Model saved to '{os.path.basename(model_save_path)}'.")
        return {
            "rows": len(df_train),
            "features": X.shape[1],
            "train_accuracy": acc_train,
            "test_accuracy": acc_test,
        }


if __name__ == "__main__":
    _agent_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    _csv_path = os.path.join(_agent_dir, "generated", "train_dataset.csv")
    _model_path = os.path.join(_agent_dir, "generated", "signal_model.pkl")

    trainer = PolicyModelTrainer()
    trainer.train(_csv_path, _model_path)
