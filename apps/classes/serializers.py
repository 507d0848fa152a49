from rest_framework import serializers

from apps.classes.models import ClassCapacity


class ClassCapacitySerializer(serializers.ModelSerializer):
    available_seats = serializers.IntegerField(read_only=True)
    waitlist_count = serializers.SerializerMethodField()

    class Meta:
        model = ClassCapacity
        fields = [
            "id",
            "class_name",
            "section",
            "total_seats",
            "filled_seats",
            "available_seats",
            "waitlist_count",
        ]

    def get_waitlist_count(self, obj) -> int:
        # Waitlists are class-scoped; every section reports its class's queue length.
        return self.context.get("waitlist_counts", {}).get(obj.class_name, 0)


class ClassRollupSerializer(serializers.Serializer):
    class_name = serializers.CharField()
    total_seats = serializers.IntegerField()
    filled_seats = serializers.IntegerField()
    available_seats = serializers.IntegerField()
    waitlist_count = serializers.IntegerField()
