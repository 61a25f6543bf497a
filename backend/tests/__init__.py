# Importing the models package registers every table before any test database is created
import league.models  # noqa: F401
