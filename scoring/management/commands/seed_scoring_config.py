from django.core.management.base import BaseCommand

from scoring.logic import ScoringError, activate_configuration, load_seed, upsert_configuration


class Command(BaseCommand):
    help = "Seed a ScoringConfiguration and its criteria from a JSON file"

    def add_arguments(self, parser):
        parser.add_argument("--file", default=None, help="Path to the JSON rubric (defaults to GRANTS['DEFAULT_SCORING_SEED'])")
        parser.add_argument("--activate", action="store_true", help="Make the seeded configuration the active one")

    def handle(self, *args, **options):
        try:
            data = load_seed(options.get("file"))
            config, created, updated, removed = upsert_configuration(data)
        except ScoringError as exc:
            self.stdout.write(self.style.ERROR(str(exc)))
            return

        if options.get("activate"):
            activate_configuration(config.id)

        self.stdout.write(self.style.SUCCESS(
            f"Scoring configuration '{config}' seeded: {created} criteria created, {updated} updated, {removed} removed"
            + (" (active)" if options.get("activate") else "")
        ))
