from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ClassCapacity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("class_name", models.CharField(max_length=50)),
                ("section", models.CharField(max_length=10)),
                ("total_seats", models.PositiveIntegerField()),
                ("filled_seats", models.PositiveIntegerField(default=0)),
            ],
            options={
                "verbose_name_plural": "class capacities",
                "ordering": ["class_name", "section"],
                "indexes": [models.Index(fields=["class_name"], name="capacity_class_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("filled_seats__lte", models.F("total_seats"))),
                        name="capacity_filled_within_total",
                    )
                ],
                "unique_together": {("class_name", "section")},
            },
        ),
    ]
