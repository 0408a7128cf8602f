from abc import ABCMeta, abstractmethod


class AbstractHamiltonian(object, metaclass=ABCMeta):
    """Anything that can produce a Bloch matrix for a vector of phases."""

    @abstractmethod
    def __call__(self, phases=()):
        pass

    @abstractmethod
    def harmonics(self):
        pass

    @property
    @abstractmethod
    def latdim(self):
        pass

    @property
    @abstractmethod
    def norbitals(self):
        pass
