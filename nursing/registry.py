from nursing.exceptions import InvalidArgument
from nursing.models import Patient
from nursing.store import Store


class IdentityRegistry:
    """
    Answers whether a patient identification number is already taken.
    """

    def __init__(self, store: Store):
        self.store = store

    def is_registered(self, id_number: str) -> bool:
        return self.store.exists_by_field(Patient, "id_number", self._clean(id_number))

    def is_registered_elsewhere(self, id_number: str, patient_id: int) -> bool:
        """
        Like `is_registered`, but ignores the patient whose record is being replaced.
        """
        return self.store.exists_by_field(
            Patient, "id_number", self._clean(id_number), exclude_id=patient_id
        )

    @staticmethod
    def _clean(id_number: str) -> str:
        if not id_number or not id_number.strip():
            raise InvalidArgument("Identification number must not be empty")
        return id_number
