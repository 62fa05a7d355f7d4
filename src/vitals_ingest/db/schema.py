"""Database schema for ingested health data."""

SCHEMA = """
-- Owners of ingested data
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Static characteristics from the Me element (one row per owner)
CREATE TABLE IF NOT EXISTS user_profile (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    date_of_birth TEXT NOT NULL,
    biological_sex TEXT,
    blood_type TEXT,
    fitzpatrick_skin_type TEXT,
    cardio_fitness_medications_use TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(user_id)
);

-- Individual observations (millions of rows for a long export)
CREATE TABLE IF NOT EXISTS health_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    metric_type TEXT NOT NULL,
    value REAL NOT NULL,
    unit TEXT NOT NULL,
    source_name TEXT NOT NULL,
    source_version TEXT,
    device TEXT,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    creation_date TEXT,
    metadata TEXT,
    UNIQUE(user_id, metric_type, start_date, end_date, source_name) ON CONFLICT REPLACE
);

CREATE INDEX IF NOT EXISTS idx_metrics_user ON health_metrics(user_id);
CREATE INDEX IF NOT EXISTS idx_metrics_type_date ON health_metrics(metric_type, start_date);
CREATE INDEX IF NOT EXISTS idx_metrics_source ON health_metrics(source_name);

-- Workout sessions
CREATE TABLE IF NOT EXISTS workouts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    uuid TEXT,
    activity_type TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    duration_minutes REAL,
    total_distance_km REAL,
    total_energy_kcal REAL,
    source_name TEXT,
    source_version TEXT,
    device TEXT,
    has_route INTEGER DEFAULT 0,
    metadata TEXT,
    UNIQUE(user_id, uuid)
);

CREATE INDEX IF NOT EXISTS idx_workouts_user ON workouts(user_id);
CREATE INDEX IF NOT EXISTS idx_workouts_date ON workouts(start_date);
CREATE INDEX IF NOT EXISTS idx_workouts_type ON workouts(activity_type);

-- Route files matched to workouts (at most one per workout)
CREATE TABLE IF NOT EXISTS workout_routes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_id INTEGER NOT NULL REFERENCES workouts(id),
    file_path TEXT NOT NULL,
    start_date TEXT,
    end_date TEXT,
    point_count INTEGER DEFAULT 0,
    points_json TEXT,
    UNIQUE(workout_id)
);

-- Daily activity rings
CREATE TABLE IF NOT EXISTS activity_summaries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    date TEXT NOT NULL,
    active_energy_burned REAL,
    active_energy_goal REAL,
    move_time_minutes REAL,
    move_time_goal REAL,
    exercise_time_minutes REAL,
    exercise_time_goal REAL,
    stand_hours INTEGER,
    stand_hours_goal INTEGER,
    UNIQUE(user_id, date)
);

CREATE INDEX IF NOT EXISTS idx_activity_date ON activity_summaries(date);

-- Daily nutrition (spreadsheet importers)
CREATE TABLE IF NOT EXISTS nutrition (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    date TEXT NOT NULL,
    calories REAL,
    protein_g REAL,
    carbs_g REAL,
    fat_g REAL,
    fiber_g REAL,
    sugar_g REAL,
    sodium_mg REAL,
    water_ml REAL,
    source_name TEXT,
    UNIQUE(user_id, date)
);

-- Daily body composition (spreadsheet importers)
CREATE TABLE IF NOT EXISTS body_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    date TEXT NOT NULL,
    weight_kg REAL,
    weight_lb REAL,
    body_fat_percent REAL,
    bmi REAL,
    lean_body_mass_kg REAL,
    waist_cm REAL,
    source_name TEXT,
    UNIQUE(user_id, date)
);

-- One audit row per import phase, never updated
CREATE TABLE IF NOT EXISTS import_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    source_type TEXT NOT NULL,
    source_file TEXT NOT NULL,
    imported_at TEXT DEFAULT CURRENT_TIMESTAMP,
    records_imported INTEGER,
    status TEXT CHECK (status IN ('success', 'partial', 'failed')),
    error_log TEXT
);

CREATE INDEX IF NOT EXISTS idx_import_user ON import_history(user_id);
"""

TABLES = [
    "users",
    "user_profile",
    "health_metrics",
    "workouts",
    "workout_routes",
    "activity_summaries",
    "nutrition",
    "body_metrics",
    "import_history",
]
